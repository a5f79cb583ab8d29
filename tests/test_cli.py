import pytest

from conftest import write_definition
from zarfkit.cli.main import ZarfKitCLI
from zarfkit.integrity.signature import PRIVATE_KEY_NAME, PUBLIC_KEY_NAME


@pytest.fixture
def workspace(tmp_path):
    src = tmp_path / "src"
    write_definition(src, {
        "kind": "ZarfPackageConfig",
        "metadata": {"name": "cli-demo", "version": "0.0.1"},
        "components": [
            {"name": "core", "required": True, "files": [{"source": "hello.txt", "target": "/hello.txt"}]},
            {"name": "addon", "description": "optional extras"},
        ],
    })
    (src / "hello.txt").write_text("hello\n")
    (tmp_path / "out").mkdir()
    return tmp_path


def run(workspace, *argv):
    ZarfKitCLI().run([
        "--tmpdir", str(workspace / "tmp"),
        "--zarf-cache", str(workspace / "cache"),
        "-a", "amd64",
        *argv,
    ])


def test_gen_key(tmp_path):
    ZarfKitCLI().run(["tools", "gen-key", str(tmp_path / "keys")])
    assert (tmp_path / "keys" / PRIVATE_KEY_NAME).is_file()
    assert (tmp_path / "keys" / PUBLIC_KEY_NAME).is_file()


def test_create_inspect_verify_deploy(workspace, capsys):
    """
    LIFECYCLE: a signed package built by the CLI can be inspected, verified
    and planned with the matching key.
    """
    ZarfKitCLI().run(["tools", "gen-key", str(workspace / "keys")])
    key = workspace / "keys" / PRIVATE_KEY_NAME
    pub = workspace / "keys" / PUBLIC_KEY_NAME

    run(workspace, "package", "create", str(workspace / "src"), "-o", str(workspace / "out"),
        "--signing-key", str(key))
    tarball = workspace / "out" / "zarf-package-cli-demo-amd64-0.0.1.tar"
    assert tarball.is_file()

    run(workspace, "package", "inspect", str(tarball), "--definition")
    run(workspace, "package", "verify", str(tarball), "-k", str(pub))
    run(workspace, "package", "deploy", str(tarball), "-k", str(pub), "--components", "addon", "--confirm")

    out = capsys.readouterr().out
    assert "Package Verified" in out
    assert "Deployment Plan" in out
    assert "cli-demo" in out


def test_errors_exit_non_zero(workspace):
    with pytest.raises(SystemExit) as exc:
        run(workspace, "package", "deploy", str(workspace / "missing.tar"))
    assert exc.value.code == 1


def test_unsigned_package_with_key_fails_verification(workspace):
    ZarfKitCLI().run(["tools", "gen-key", str(workspace / "keys")])
    run(workspace, "package", "create", str(workspace / "src"), "-o", str(workspace / "out"))

    with pytest.raises(SystemExit):
        run(workspace, "package", "verify", str(workspace / "out" / "zarf-package-cli-demo-amd64-0.0.1.tar"),
            "-k", str(workspace / "keys" / PUBLIC_KEY_NAME))
