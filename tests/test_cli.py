"""Tests for CLI commands using click.testing.CliRunner."""

import io
import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from PIL import Image

from promogif.catalog import BACKGROUND_CATEGORIES
from promogif.cli import main
from promogif.delivery import Artifact


class TestMainCLI:
    """Tests for main CLI group."""

    def test_main_help(self):
        """Test main CLI help command."""
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "animated promotional banner generator" in result.output
        assert "generate" in result.output

    def test_main_version(self):
        """Test main CLI version command."""
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "promogif, version 0.1.0" in result.output


class TestListingCommands:
    """Tests for profiles and styles commands."""

    def test_profiles(self):
        result = CliRunner().invoke(main, ["profiles"])
        assert result.exit_code == 0
        for size in ("640x320", "960x480", "1280x640"):
            assert size in result.output

    def test_styles(self):
        result = CliRunner().invoke(main, ["styles"])
        assert result.exit_code == 0
        assert "galaxy" in result.output
        assert "Sunset Orange" in result.output


class TestGenerateCommand:
    """Tests for generate CLI command."""

    @pytest.mark.slow
    def test_generate_writes_gif(self, tmp_path):
        """Test a short end-to-end run at full capture resolution."""
        runner = CliRunner()
        result = runner.invoke(
            main,
            [
                "generate",
                "--name", "My Promo Site",
                "--link", "www.one.example",
                "--frames", "2",
                "--settle-ms", "0",
                "--profile", "small",
                "--output-dir", str(tmp_path),
            ],
        )

        assert result.exit_code == 0, result.output
        assert "✅ Saved" in result.output
        path = tmp_path / "my-promo-site-link-alternatif-640x320.gif"
        assert path.exists()
        with Image.open(io.BytesIO(path.read_bytes())) as gif:
            assert gif.size == (640, 320)

    def test_invalid_frame_count(self, tmp_path):
        result = CliRunner().invoke(main, ["generate", "--frames", "0", "-o", str(tmp_path)])
        assert result.exit_code == 2
        assert "Invalid configuration" in result.output
        assert list(tmp_path.iterdir()) == []

    def test_unknown_style(self, tmp_path):
        result = CliRunner().invoke(main, ["generate", "--style", "plaid", "-o", str(tmp_path)])
        assert result.exit_code == 2
        assert "Unknown style" in result.output

    def test_unknown_profile(self):
        result = CliRunner().invoke(main, ["generate", "--profile", "huge"])
        assert result.exit_code == 2

    def test_failed_run_exit_code(self, tmp_path):
        missing = tmp_path / "missing-logo.png"
        result = CliRunner().invoke(
            main,
            ["generate", "--logo", str(missing), "--frames", "1", "--settle-ms", "0", "-o", str(tmp_path)],
        )
        assert result.exit_code == 1
        assert "GIF generation failed" in result.output

    def test_env_override_malformed(self, tmp_path):
        result = CliRunner().invoke(
            main, ["generate", "-o", str(tmp_path)], env={"PROMOGIF_CONFIG_TOTAL_FRAMES": "abc"}
        )
        assert result.exit_code == 2
        assert "Invalid value for PROMOGIF_CONFIG_TOTAL_FRAMES" in result.output
        assert "Traceback" not in result.output

    def test_explicit_flag_wins_over_env(self, tmp_path):
        result = CliRunner().invoke(
            main,
            ["generate", "--frames", "0", "-o", str(tmp_path)],
            env={"PROMOGIF_CONFIG_TOTAL_FRAMES": "2"},
        )
        assert result.exit_code == 2
        assert "Invalid configuration" in result.output

    def test_env_applies_when_flag_omitted(self, tmp_path):
        with patch("promogif.cli._run_pipeline", new=_RecordingPipeline()) as run:
            result = CliRunner().invoke(
                main, ["generate", "-o", str(tmp_path)], env={"PROMOGIF_CONFIG_TOTAL_FRAMES": "3"}
            )
        assert result.exit_code == 0, result.output
        assert run.config.total_frames == 3


class _RecordingPipeline:
    """Stands in for the pipeline run: records its inputs and delivers a stub GIF."""

    def __init__(self):
        self.scene = None
        self.config = None

    async def __call__(self, scene, config, sink, proxy_base):
        self.scene = scene
        self.config = config
        artifact = Artifact(filename="stub.gif", data=b"GIF89a")
        sink.deliver(artifact)
        return artifact


@pytest.fixture
def presets_file(tmp_path):
    path = tmp_path / "sites.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "demo",
                    "name": "DEMO SITE",
                    "logo": "https://cdn.example/demo/logo.png",
                    "backgrounds": ["https://cdn.example/demo/bg1.png", "https://cdn.example/demo/bg2.png"],
                    "slideshowImages": ["https://cdn.example/demo/s1.png"],
                },
                {"id": "plain", "name": "PLAIN", "logo": "https://cdn.example/plain/logo.png"},
            ]
        ),
        encoding="utf-8",
    )
    return path


class TestSitePresets:
    """Tests for --presets/--site on generate and the backgrounds command."""

    def test_site_preset_applied(self, tmp_path, presets_file):
        with patch("promogif.cli._run_pipeline", new=_RecordingPipeline()) as run:
            result = CliRunner().invoke(
                main, ["generate", "--presets", str(presets_file), "--site", "demo", "-o", str(tmp_path)]
            )

        assert result.exit_code == 0, result.output
        content = run.scene.content
        assert content.site_name == "DEMO SITE"
        assert content.logo_url == "https://cdn.example/demo/logo.png"
        assert content.background_url == "https://cdn.example/demo/bg1.png"
        assert [image.url for image in content.slideshow] == ["https://cdn.example/demo/s1.png"]

    def test_explicit_flags_win_over_site(self, tmp_path, presets_file):
        with patch("promogif.cli._run_pipeline", new=_RecordingPipeline()) as run:
            result = CliRunner().invoke(
                main,
                [
                    "generate",
                    "--presets", str(presets_file),
                    "--site", "demo",
                    "--name", "Other Name",
                    "--background", "local-bg.png",
                    "-o", str(tmp_path),
                ],
            )

        assert result.exit_code == 0, result.output
        content = run.scene.content
        assert content.site_name == "Other Name"
        assert content.background_url == "local-bg.png"
        assert content.logo_url == "https://cdn.example/demo/logo.png"

    def test_site_without_presets(self, tmp_path):
        result = CliRunner().invoke(main, ["generate", "--site", "demo", "-o", str(tmp_path)])
        assert result.exit_code == 2
        assert "--site needs a --presets file" in result.output

    def test_unknown_site(self, tmp_path, presets_file):
        result = CliRunner().invoke(
            main, ["generate", "--presets", str(presets_file), "--site", "nope", "-o", str(tmp_path)]
        )
        assert result.exit_code == 2
        assert "Unknown site 'nope'" in result.output

    def test_shuffle_background(self, tmp_path, presets_file):
        with patch("promogif.cli._run_pipeline", new=_RecordingPipeline()) as run:
            result = CliRunner().invoke(
                main,
                ["generate", "--presets", str(presets_file), "--site", "plain", "--shuffle-background",
                 "-o", str(tmp_path)],
            )

        assert result.exit_code == 0, result.output
        offered = {url for category in BACKGROUND_CATEGORIES for url in category.backgrounds}
        assert run.scene.content.background_url in offered

    def test_shuffle_background_keeps_explicit_background(self, tmp_path):
        with patch("promogif.cli._run_pipeline", new=_RecordingPipeline()) as run:
            result = CliRunner().invoke(
                main, ["generate", "--background", "mine.png", "--shuffle-background", "-o", str(tmp_path)]
            )

        assert result.exit_code == 0, result.output
        assert run.scene.content.background_url == "mine.png"

    def test_backgrounds_lists_exclusive_first(self, presets_file):
        result = CliRunner().invoke(main, ["backgrounds", "--presets", str(presets_file), "--site", "demo"])

        assert result.exit_code == 0, result.output
        assert "Exclusive DEMO SITE" in result.output
        assert result.output.index("exclusive-demo") < result.output.index("casino")


class TestProxyCommand:
    """Tests for proxy CLI command."""

    def test_proxy_starts_uvicorn(self):
        with patch("uvicorn.run") as run:
            result = CliRunner().invoke(main, ["proxy", "--port", "9123"])

        assert result.exit_code == 0
        run.assert_called_once()
        assert run.call_args.kwargs == {"host": "127.0.0.1", "port": 9123}
