"""Tests for main.py CLI functionality."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from cropslice.core import PipelineConfig
from cropslice.main import _read_image, build_parser, load_config, main


class TestMainCLI:
    """Tests for the main CLI functionality."""

    def test_main_with_no_args_shows_help(self):
        """Test that running main without arguments shows help."""
        with patch("sys.argv", ["cropslice"]):
            with patch("argparse.ArgumentParser.print_help") as mock_help:
                with patch("sys.exit") as mock_exit:
                    main()
                    mock_help.assert_called_once()
                    mock_exit.assert_called_once_with(1)

    def test_main_version_command(self):
        """Test version command output."""
        with patch("sys.argv", ["cropslice", "version"]):
            with patch("builtins.print") as mock_print:
                with patch("sys.exit") as mock_exit:
                    main()
                    mock_print.assert_any_call("cropslice")
                    mock_print.assert_any_call("Version 0.1.0")
                    mock_print.assert_any_call("Image tiling to zip archives on S3")
                    mock_exit.assert_called_once_with(0)

    def test_main_crop_command_prints_payload(self, monkeypatch):
        """Test that a successful crop prints the link payload and exits 0."""
        monkeypatch.setenv("BUCKET_NAME", "env-bucket")
        payload = {"fileUrl": "https://example/x", "fileName": "cropped_images_20240101000000.zip"}
        test_args = ["cropslice", "crop", "photo.png", "--tile-width", "64", "--tile-height", "32"]

        with patch("sys.argv", test_args):
            with patch("cropslice.main.run_command", new=AsyncMock(return_value=(200, payload))) as mock_run:
                with patch("builtins.print") as mock_print:
                    with patch("sys.exit") as mock_exit:
                        main()

        args, config = mock_run.call_args.args
        assert args.command == "crop"
        assert args.tile_width == "64"
        assert config.bucket == "env-bucket"
        mock_print.assert_called_once_with(json.dumps(payload, indent=2))
        mock_exit.assert_called_once_with(0)

    def test_main_crop_command_failure_exits_1(self, monkeypatch):
        monkeypatch.setenv("BUCKET_NAME", "env-bucket")
        test_args = ["cropslice", "crop", "photo.png", "--tile-width", "0", "--tile-height", "32"]

        with patch("sys.argv", test_args):
            with patch("cropslice.main.run_command", new=AsyncMock(return_value=(400, {"error": "bad"}))):
                with patch("builtins.print"):
                    with patch("sys.exit") as mock_exit:
                        main()

        mock_exit.assert_called_once_with(1)

    def test_main_delete_command_with_all_options(self, monkeypatch):
        monkeypatch.delenv("BUCKET_NAME", raising=False)
        test_args = [
            "cropslice",
            "delete",
            "cropped_images_20240101000000.zip",
            "--bucket",
            "cli-bucket",
            "--region",
            "eu-west-1",
            "--debug",
        ]

        with patch("sys.argv", test_args):
            with patch("cropslice.main.run_command", new=AsyncMock(return_value=(200, {"message": "ok"}))) as mock_run:
                with patch("cropslice.main.set_debug") as mock_debug:
                    with patch("builtins.print"):
                        with patch("sys.exit") as mock_exit:
                            main()

        args, config = mock_run.call_args.args
        assert args.file_name == "cropped_images_20240101000000.zip"
        assert config.bucket == "cli-bucket"
        assert config.region == "eu-west-1"
        assert config.debug is True
        mock_debug.assert_called_once_with(True)
        mock_exit.assert_called_once_with(0)

    def test_main_missing_bucket_is_configuration_error(self, monkeypatch):
        monkeypatch.delenv("BUCKET_NAME", raising=False)

        with patch("sys.argv", ["cropslice", "delete", "cropped_images_20240101000000.zip"]):
            with patch("cropslice.main.run_command", new=AsyncMock()) as mock_run:
                with patch("builtins.print") as mock_print:
                    with patch("sys.exit") as mock_exit:
                        main()

        mock_run.assert_not_called()
        mock_print.assert_called_once_with(json.dumps({"error": "BUCKET_NAME is not set"}))
        mock_exit.assert_called_once_with(2)

    def test_main_keyboard_interrupt(self, monkeypatch):
        monkeypatch.setenv("BUCKET_NAME", "env-bucket")

        def interrupted(coro):
            coro.close()
            raise KeyboardInterrupt

        with patch("sys.argv", ["cropslice", "delete", "cropped_images_20240101000000.zip"]):
            with patch("cropslice.main.asyncio.run", side_effect=interrupted):
                with patch("sys.exit") as mock_exit:
                    main()

        mock_exit.assert_called_once_with(130)


class TestArguments:
    """Tests for argument parsing and config loading."""

    def test_crop_requires_tile_dimensions(self):
        parser = build_parser()

        with pytest.raises(SystemExit):
            parser.parse_args(["crop", "photo.png", "--tile-width", "10"])

    def test_cli_options_override_environment(self, monkeypatch):
        monkeypatch.setenv("BUCKET_NAME", "env-bucket")
        monkeypatch.setenv("JPEG_QUALITY", "80")
        args = build_parser().parse_args(
            ["crop", "photo.png", "--tile-width", "8", "--tile-height", "8", "--quality", "40", "--attempts", "3"]
        )

        config = load_config(args)

        assert isinstance(config, PipelineConfig)
        assert config.bucket == "env-bucket"
        assert config.jpeg_quality == 40
        assert config.max_upload_attempts == 3
        assert config.encode_concurrency == 2

    def test_read_image(self, tmp_path):
        image_path = tmp_path / "photo.png"
        image_path.write_bytes(b"png bytes")

        assert _read_image(str(image_path)) == b"png bytes"
        assert _read_image(str(tmp_path / "missing.png")) is None
        assert _read_image(str(tmp_path)) is None
