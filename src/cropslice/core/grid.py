"""Grid partitioning of an image into tile rectangles."""

from typing import Iterator, List, Tuple

from .models import TileRect, member_name

__all__ = ["iter_grid", "plan_grid", "grid_shape", "member_name"]


def iter_grid(
    image_width: int, image_height: int, tile_width: int, tile_height: int
) -> Iterator[TileRect]:
    """
    Yield the tile rectangles of an image in row-major order.

    Origins step by the tile size; the last column and row are clamped to the
    remaining image extent. A tile larger than the image yields one
    rectangle covering the whole image.

    Raises:
        ValueError: if any dimension is not positive
    """
    if min(image_width, image_height, tile_width, tile_height) <= 0:
        raise ValueError(
            "Image and tile dimensions must be positive, got "
            f"image={image_width}x{image_height} tile={tile_width}x{tile_height}"
        )

    for y in range(0, image_height, tile_height):
        height = min(tile_height, image_height - y)
        for x in range(0, image_width, tile_width):
            yield TileRect(
                origin_x=x,
                origin_y=y,
                width=min(tile_width, image_width - x),
                height=height,
            )


def plan_grid(
    image_width: int, image_height: int, tile_width: int, tile_height: int
) -> List[TileRect]:
    """Return the full grid partition as a list (see iter_grid)."""
    return list(iter_grid(image_width, image_height, tile_width, tile_height))


def grid_shape(
    image_width: int, image_height: int, tile_width: int, tile_height: int
) -> Tuple[int, int]:
    """Number of (columns, rows) the grid partition has."""
    columns = -(-image_width // tile_width)
    rows = -(-image_height // tile_height)
    return columns, rows

