"""
Tests for the multi-architecture builder and the build use case.
"""

import io
import textwrap
from pathlib import Path

import pytest

from pie_module.core.engine.builder import Builder
from pie_module.core.engine.errors import BuildError, ToolchainError
from pie_module.core.engine.toolchain import EnvScriptResolver
from pie_module.core.models.arch import default_architectures
from pie_module.core.use_cases.build import run_build


@pytest.fixture
def staging_dir(tmp_path: Path) -> Path:
    return tmp_path / "magisk_module" / "bins"


@pytest.fixture
def builder(mock_registry, source_dir: Path, staging_dir: Path) -> Builder:
    resolver = EnvScriptResolver(
        registry=mock_registry,
        source_dir=source_dir,
        script_name="build_env.sh",
        script_url="https://example.invalid/build_env.sh",
    )
    return Builder(
        registry=mock_registry,
        resolver=resolver,
        source_dir=source_dir,
        staging_dir=staging_dir,
    )


# ── Build all ────────────────────────────────────────────────────────


class TestBuildAll:
    def test_one_artifact_per_abi(self, builder, cargo_outputs, staging_dir: Path):
        cargo_outputs()
        report = builder.build_all(default_architectures())

        assert sorted(p.name for p in staging_dir.iterdir()) == [
            "pie-arm64-v8a",
            "pie-armeabi-v7a",
            "pie-x86",
            "pie-x86_64",
        ]
        assert report.total == 4
        assert (staging_dir / "pie-x86").read_bytes() == b"ELF x86"

    def test_rebuild_overwrites(self, builder, cargo_outputs, source_dir: Path, staging_dir: Path):
        cargo_outputs()
        builder.build_all(default_architectures())
        (source_dir / "target" / "i686-linux-android" / "release" / "pie").write_bytes(b"ELF x86 v2")
        builder.build_all(default_architectures())

        assert len(list(staging_dir.iterdir())) == 4
        assert (staging_dir / "pie-x86").read_bytes() == b"ELF x86 v2"

    def test_sequential_order(self, builder, cargo_outputs, mock_shell):
        cargo_outputs()
        builder.build_all(default_architectures())
        compiles = [i for i in mock_shell.called_ids if i.startswith("compile:")]
        assert compiles == [
            "compile:arm64-v8a",
            "compile:armeabi-v7a",
            "compile:x86",
            "compile:x86_64",
        ]

    def test_compile_failure_stops_run(self, builder, cargo_outputs, mock_shell, staging_dir: Path):
        cargo_outputs()
        mock_shell.set_failure("compile:armeabi-v7a", error="linker not found")

        with pytest.raises(BuildError, match="linker not found"):
            builder.build_all(default_architectures())

        assert [p.name for p in staging_dir.iterdir()] == ["pie-arm64-v8a"]
        assert "toolchain:x86" not in mock_shell.called_ids

    def test_missing_binary_after_compile(self, builder, staging_dir: Path):
        with pytest.raises(BuildError, match="does not exist"):
            builder.build_all(default_architectures())
        assert not staging_dir.exists() or list(staging_dir.iterdir()) == []

    def test_env_script_fetched_once_before_loop(
        self, builder, cargo_outputs, mock_shell, source_dir: Path, env_script_text, monkeypatch
    ):
        (source_dir / "build_env.sh").unlink()
        cargo_outputs()
        fetches = []

        def fake_urlopen(req, timeout=None):
            fetches.append(mock_shell.call_count)
            return io.BytesIO(env_script_text.encode())

        monkeypatch.setattr("urllib.request.urlopen", fake_urlopen)
        report = builder.build_all(default_architectures())

        assert report.total == 4
        assert fetches == [0]
        assert (source_dir / "build_env.sh").read_text() == env_script_text


# ── Steps ────────────────────────────────────────────────────────────


class TestEnsureTargetInstalled:
    def test_already_installed(self, builder, mock_shell):
        mock_shell.set_output(
            "target-list:aarch64-linux-android",
            "x86_64-unknown-linux-gnu\naarch64-linux-android\n",
        )
        assert builder.ensure_target_installed("aarch64-linux-android") is False
        assert "target-add:aarch64-linux-android" not in mock_shell.called_ids

    def test_adds_missing_target(self, builder, mock_shell):
        mock_shell.set_output("target-list:i686-linux-android", "x86_64-unknown-linux-gnu")
        assert builder.ensure_target_installed("i686-linux-android") is True
        add = mock_shell.call_log[-1]
        assert add.action.params["command"] == ["rustup", "target", "add", "i686-linux-android"]

    def test_add_failure_aborts(self, builder, cargo_outputs, mock_shell):
        cargo_outputs()
        mock_shell.set_failure("target-add:aarch64-linux-android", error="no network")

        with pytest.raises(ToolchainError, match="no network"):
            builder.build_all(default_architectures())
        assert not any(i.startswith("compile:") for i in mock_shell.called_ids)


class TestCompile:
    def test_cargo_invocation(self, builder, cargo_outputs, mock_shell, source_dir: Path):
        cargo_outputs()
        builder.build_all(default_architectures()[:1])

        ctx = next(c for c in mock_shell.call_log if c.action.id == "compile:arm64-v8a")
        params = ctx.action.params
        assert params["command"] == [
            "cargo", "build", "--release", "--target", "aarch64-linux-android",
        ]
        assert params["cwd"] == str(source_dir)
        assert params["env"]["CARGO_TARGET_AARCH64_LINUX_ANDROID_LINKER"] == (
            "/ndk/bin/aarch64-linux-android21-clang"
        )

    def test_script_exports_reach_cargo(self, builder, cargo_outputs, mock_shell):
        cargo_outputs()
        mock_shell.set_output(
            "toolchain:x86",
            "RUST_TARGET=i686-linux-android\nCC_ABS=/ndk/bin/clang\nAR=/ndk/bin/llvm-ar\n"
            "NDK_SYSROOT=/ndk/sysroot",
        )
        builder.build_all(default_architectures()[2:3])

        ctx = next(c for c in mock_shell.call_log if c.action.id == "compile:x86")
        assert ctx.action.params["env"]["NDK_SYSROOT"] == "/ndk/sysroot"


class TestCollect:
    def test_creates_staging_dir(self, builder, tmp_path: Path, staging_dir: Path):
        binary = tmp_path / "pie"
        binary.write_bytes(b"ELF")
        dest = builder.collect(binary, "x86")
        assert dest == staging_dir / "pie-x86"
        assert dest.read_bytes() == b"ELF"

    def test_failure_leaves_no_partial(self, builder, tmp_path: Path, staging_dir: Path):
        with pytest.raises(BuildError):
            builder.collect(tmp_path / "missing", "x86")
        assert list(staging_dir.iterdir()) == []


# ── Use case ─────────────────────────────────────────────────────────


class TestRunBuild:
    def test_run_build_with_config(self, tmp_path: Path, source_dir: Path, cargo_outputs, mock_registry):
        cargo_outputs()
        config = tmp_path / "pie-module.yml"
        config.write_text(textwrap.dedent("""\
            architectures:
              - abi: arm64-v8a
              - abi: x86
            build:
              source_dir: src
              staging_dir: out
        """))

        result = run_build(config_path=config, registry=mock_registry)

        assert result.ok, result.error
        assert sorted(result.report.artifacts) == ["arm64-v8a", "x86"]
        assert (tmp_path / "out" / "pie-arm64-v8a").is_file()
        assert result.to_dict()["report"]["targets"]["x86"] == "i686-linux-android"

    def test_run_build_config_error(self, tmp_path: Path):
        config = tmp_path / "pie-module.yml"
        config.write_text("architectures: [")
        result = run_build(config_path=config)
        assert not result.ok
        assert "Invalid YAML" in result.error

    def test_run_build_failure_is_reported(self, tmp_path: Path, source_dir: Path, mock_registry, mock_shell):
        config = tmp_path / "pie-module.yml"
        config.write_text("build:\n  source_dir: src\n")
        mock_shell.set_failure("compile:arm64-v8a", error="boom")

        result = run_build(config_path=config, registry=mock_registry)

        assert not result.ok
        assert "boom" in result.error
