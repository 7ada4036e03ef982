"""
Shared test fixtures and configuration.
"""

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from pie_module.adapters.device.host import StaticHost
from pie_module.adapters.mock import MockAdapter
from pie_module.adapters.registry import AdapterRegistry
from pie_module.core.models.arch import KNOWN_ABIS

ABI_PROP = "ro.product.cpu.abi"

TRIPLES = {
    "arm64-v8a": "aarch64-linux-android",
    "armeabi-v7a": "armv7-linux-androideabi",
    "x86": "i686-linux-android",
    "x86_64": "x86_64-linux-android",
}

FAKE_ENV_SCRIPT = textwrap.dedent("""\
    case "$1" in
      arm64-v8a) RUST_TARGET=aarch64-linux-android ;;
      armeabi-v7a) RUST_TARGET=armv7-linux-androideabi ;;
      x86) RUST_TARGET=i686-linux-android ;;
      x86_64) RUST_TARGET=x86_64-linux-android ;;
    esac
    CC_ABS=/ndk/bin/${RUST_TARGET}$2-clang
    AR=/ndk/bin/llvm-ar
    NDK_SYSROOT=/ndk/sysroot
    PATH=/ndk/bin:$PATH
    export RUST_TARGET CC_ABS AR NDK_SYSROOT PATH
    echo "configured $1 for API $2"
""")


@pytest.fixture
def triples() -> dict[str, str]:
    """ABI → rust target triple, as the env script reports them."""
    return dict(TRIPLES)


@pytest.fixture
def env_script_text() -> str:
    return FAKE_ENV_SCRIPT


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """A cargo project whose env script is already present."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "Cargo.toml").write_text('[package]\nname = "pie"\n')
    (src / "build_env.sh").write_text(FAKE_ENV_SCRIPT)
    return src


@pytest.fixture
def mock_shell() -> MockAdapter:
    """Mock 'shell' adapter that knows every default ABI's toolchain."""
    mock = MockAdapter(adapter_name="shell")
    for abi, triple in TRIPLES.items():
        mock.set_output(
            f"toolchain:{abi}",
            f"RUST_TARGET={triple}\nCC_ABS=/ndk/bin/{triple}21-clang\nAR=/ndk/bin/llvm-ar",
        )
    return mock


@pytest.fixture
def mock_registry(mock_shell: MockAdapter) -> AdapterRegistry:
    registry = AdapterRegistry()
    registry.register(mock_shell)
    return registry


@pytest.fixture
def cargo_outputs(source_dir: Path) -> Callable[[], None]:
    """Place a compiled binary where cargo would put it for every ABI."""

    def _make(binary: str = "pie") -> None:
        for abi, triple in TRIPLES.items():
            out = source_dir / "target" / triple / "release" / binary
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(f"ELF {abi}".encode())

    return _make


@pytest.fixture
def stage_artifacts() -> Callable[[Path], None]:
    """Stage ``pie-<abi>`` for every default ABI into ``<modpath>/bins``."""

    def _stage(modpath: Path) -> None:
        bins = modpath / "bins"
        bins.mkdir(parents=True, exist_ok=True)
        for abi in KNOWN_ABIS:
            (bins / f"pie-{abi}").write_bytes(f"ELF {abi}".encode())

    return _stage


@pytest.fixture
def module_path(tmp_path: Path, stage_artifacts) -> Path:
    """A module directory with every default artifact staged."""
    modpath = tmp_path / "module"
    stage_artifacts(modpath)
    return modpath


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    return tmp_path / "andstore"


@pytest.fixture
def device() -> Callable[[str], StaticHost]:
    """Factory for a static host reporting the given ABI."""

    def _device(abi: str) -> StaticHost:
        return StaticHost(props={ABI_PROP: abi})

    return _device


@pytest.fixture
def tmp_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Per-test temp dir whose name does not embed the test's name."""
    return tmp_path_factory.mktemp("case")
