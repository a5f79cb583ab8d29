import hashlib
import tarfile
from dataclasses import replace

import httpx
import pytest

from conftest import FakeRegistry, publish_directory, write_definition
from zarfkit.core.config import ZarfConfig
from zarfkit.core.errors import (
    FilterError,
    IntegrityError,
    PackageFormatError,
    RegistryError,
    SignatureError,
    StructuralError,
)
from zarfkit.core.models import Package
from zarfkit.core.version import CLI_VERSION
from zarfkit.core.yamlio import parse_package
from zarfkit.filters.strategy import EmptyFilter
from zarfkit.integrity.signature import ERR_SIG_BUT_NO_KEY, generate_key_pair
from zarfkit.layout.package import PackagePaths
from zarfkit.packager.create import Creator, DelegatedResources, package_name
from zarfkit.packager.deploy import Deployer
from zarfkit.packager.deprecated import ALL_MIGRATIONS
from zarfkit.sources.base import identify_source, new_source
from zarfkit.sources.oci import OCISource
from zarfkit.sources.tarball import SplitTarballSource, TarballSource, URLSource

DEMO = {
    "kind": "ZarfPackageConfig",
    "metadata": {"name": "demo", "version": "1.0.0"},
    "components": [
        {
            "name": "base",
            "required": True,
            "files": [{"source": "motd.txt", "target": "/etc/motd"}],
            "manifests": [{"name": "app", "files": ["deploy.yaml"]}],
        },
        {"name": "docs", "files": [{"source": "docs.txt", "target": "/usr/share/doc/demo.txt"}]},
        {"name": "extra", "images": ["nginx:1.25"], "repos": ["https://github.com/org/app.git@v1.0.0"]},
        {"name": "arm-only", "only": {"cluster": {"architecture": "arm64"}}},
    ],
}

DEMO_FILES = {
    "motd.txt": "welcome\n",
    "deploy.yaml": "kind: Deployment\n",
    "docs.txt": "read me\n",
}


def tar_names(path):
    with tarfile.open(path) as tar:
        return sorted(tar.getnames())


def read_definition(tarball) -> Package:
    with tarfile.open(tarball) as tar:
        return parse_package(tar.extractfile("zarf.yaml").read())


@pytest.fixture
def demo_tarball(build_package):
    written = build_package(DEMO, DEMO_FILES)
    assert len(written) == 1
    return written[0]


# --- CREATE ---

def test_create_writes_sealed_package(demo_tarball):
    """
    CREATE: only components with content ship a tarball, the build data is
    recorded and the aggregate checksum anchors checksums.txt.
    """
    assert demo_tarball.name == "zarf-package-demo-amd64-1.0.0.tar"
    assert tar_names(demo_tarball) == [
        "checksums.txt", "components/base.tar", "components/docs.tar", "zarf.yaml",
    ]

    pkg = read_definition(demo_tarball)
    assert [c.name for c in pkg.components] == ["base", "docs", "extra"]
    assert pkg.metadata.architecture == "amd64"
    assert pkg.build.version == CLI_VERSION
    assert pkg.build.architecture == "amd64"
    assert pkg.build.migrations == ALL_MIGRATIONS
    assert pkg.build.timestamp

    with tarfile.open(demo_tarball) as tar:
        checksums = tar.extractfile("checksums.txt").read()
    assert pkg.metadata.aggregate_checksum == hashlib.sha256(checksums).hexdigest()


def test_create_delegates_remote_resources(tmp_path, config):
    src = tmp_path / "src"
    write_definition(src, DEMO)
    for rel, content in DEMO_FILES.items():
        (src / rel).write_text(content)

    collector = DelegatedResources()
    Creator(config, collector=collector).assemble(src, PackagePaths(tmp_path / "build"))
    assert collector.requests == [
        ("extra", "repo", "https://github.com/org/app.git@v1.0.0"),
        ("extra", "image", "nginx:1.25"),
    ]


def test_create_verifies_file_shasums(build_package):
    definition = {
        "kind": "ZarfPackageConfig",
        "metadata": {"name": "pinned"},
        "components": [{"name": "c", "files": [{"source": "f.txt", "target": "/f", "shasum": "0" * 64}]}],
    }
    with pytest.raises(IntegrityError, match="shasum mismatch"):
        build_package(definition, {"f.txt": "content"})


def test_create_extracts_files_from_archives(tmp_path, config):
    src = tmp_path / "src"
    inner = tmp_path / "inner"
    inner.mkdir()
    (inner / "tool").write_text("#!/bin/sh\n")
    src.mkdir()
    with tarfile.open(src / "tools.tar.gz", "w:gz") as tar:
        tar.add(inner / "tool", arcname="bin/tool")
    write_definition(src, {
        "kind": "ZarfPackageConfig",
        "metadata": {"name": "tools"},
        "components": [{"name": "cli", "files": [
            {"source": "tools.tar.gz", "extractPath": "bin/tool", "target": "/usr/local/bin/tool",
             "executable": True},
        ]}],
    })

    layout = PackagePaths(tmp_path / "build")
    Creator(config).assemble(src, layout)
    staged = layout.components.dirs["cli"].files / "0" / "tool"
    assert staged.read_text() == "#!/bin/sh\n"
    assert staged.stat().st_mode & 0o777 == 0o700


@pytest.mark.parametrize("definition, expected", [
    ({"kind": "ZarfInitConfig", "metadata": {"architecture": "amd64"}}, "zarf-init-amd64"),
    ({"metadata": {"name": "app", "architecture": "arm64"}}, "zarf-package-app-arm64"),
    ({"metadata": {"name": "app", "architecture": "amd64", "version": "2.0.0"},
      "build": {"differential": True, "differentialPackageVersion": "1.0.0"}},
     "zarf-package-app-amd64-1.0.0-differential-2.0.0"),
])
def test_package_name(definition, expected):
    assert package_name(Package.from_dict(definition)) == expected


# --- DEPLOY ---

def test_deploy_plan_from_tarball(demo_tarball, config):
    plan = Deployer(config).plan(str(demo_tarball))

    assert plan.component_names == ["base"]
    base = plan.directories["base"]
    assert (base.files / "0" / "motd").read_text() == "welcome\n"
    assert (base.manifests / "app-0.yaml").read_text() == "kind: Deployment\n"
    assert plan.warnings == []


def test_deploy_plan_with_selection(demo_tarball, config):
    plan = Deployer(replace(config, optional_components=["d*", "extra"])).plan(str(demo_tarball))

    assert plan.component_names == ["base", "docs", "extra"]
    assert (plan.directories["docs"].files / "0" / "demo.txt").read_text() == "read me\n"
    assert plan.directories["extra"].base.is_dir()


def test_deploy_plan_rejects_unknown_selection(demo_tarball, config):
    with pytest.raises(FilterError) as exc:
        Deployer(replace(config, optional_components=["arm-only"])).plan(str(demo_tarball))
    assert "arm-only" in str(exc.value)


def test_deploy_detects_tampered_component(demo_tarball, config, tmp_path):
    unpacked = tmp_path / "unpacked"
    with tarfile.open(demo_tarball) as tar:
        tar.extractall(unpacked, filter="data")
    (unpacked / "components" / "docs.tar").write_bytes(b"swapped")
    tampered = tmp_path / "tampered.tar"
    with tarfile.open(tampered, "w") as tar:
        for name in tar_names(demo_tarball):
            tar.add(unpacked / name, arcname=name)

    with pytest.raises(IntegrityError, match="components/docs.tar"):
        Deployer(config).plan(str(tampered))


def test_archive_shasum_is_checked(demo_tarball, config, tmp_path):
    source = TarballSource(str(demo_tarball), replace(config, shasum="0" * 64))
    with pytest.raises(IntegrityError):
        source.load_package(PackagePaths(tmp_path / "out"), EmptyFilter())

    good = replace(config, shasum=hashlib.sha256(demo_tarball.read_bytes()).hexdigest())
    pkg, _ = TarballSource(str(demo_tarball), good).load_package(PackagePaths(tmp_path / "ok"), EmptyFilter())
    assert len(pkg.components) == 3


def test_missing_tarball(config, tmp_path):
    with pytest.raises(PackageFormatError):
        TarballSource(str(tmp_path / "nope.tar"), config).load_package(PackagePaths(tmp_path / "out"), EmptyFilter())


def test_metadata_only_load(demo_tarball, config, tmp_path):
    layout = PackagePaths(tmp_path / "meta")
    pkg, warnings = new_source(str(demo_tarball), config).load_package_metadata(layout)

    assert pkg.metadata.name == "demo"
    assert warnings == []
    assert not (tmp_path / "meta" / "components").exists()
    assert layout.components.tarballs == {}


# --- SPLIT PACKAGES ---

def test_split_package_round_trip(build_package, config):
    definition = {
        "kind": "ZarfPackageConfig",
        "metadata": {"name": "big", "version": "0.1.0"},
        "components": [{"name": "blob", "required": True, "files": [{"source": "big.bin", "target": "/big.bin"}]}],
    }
    written = build_package(definition, {"big.bin": "x" * 1_500_000}, max_package_size_mb=1)

    assert [p.name for p in written] == [
        "zarf-package-big-amd64-0.1.0.tar.part000",
        "zarf-package-big-amd64-0.1.0.tar.part001",
        "zarf-package-big-amd64-0.1.0.tar.part002",
    ]
    source = new_source(str(written[0]), config)
    assert isinstance(source, SplitTarballSource)

    plan = Deployer(config).plan(str(written[0]))
    assert plan.component_names == ["blob"]
    assert (plan.directories["blob"].files / "0" / "big.bin").stat().st_size == 1_500_000
    assert not written[1].exists()


# --- SIGNATURES ---

@pytest.fixture
def keys(tmp_path):
    return generate_key_pair(tmp_path / "keys")


@pytest.fixture
def signed_tarball(build_package, keys):
    return build_package(DEMO, DEMO_FILES, signing_key_path=str(keys[0]))[0]


def test_signed_package_verifies(signed_tarball, keys, config):
    assert "zarf.yaml.sig" in tar_names(signed_tarball)
    plan = Deployer(replace(config, public_key_path=str(keys[1]))).plan(str(signed_tarball))
    assert plan.component_names == ["base"]


def test_signed_package_needs_a_key(signed_tarball, config):
    with pytest.raises(SignatureError):
        Deployer(config).plan(str(signed_tarball))
    assert Deployer(replace(config, insecure=True)).plan(str(signed_tarball)).component_names == ["base"]


def test_inspecting_signed_package_only_warns(signed_tarball, config, tmp_path):
    source = new_source(str(signed_tarball), config)
    _, warnings = source.load_package_metadata(PackagePaths(tmp_path / "meta"), skip_validation=True)
    assert warnings == [ERR_SIG_BUT_NO_KEY]


def test_unsigned_package_with_key(demo_tarball, keys, config):
    with pytest.raises(SignatureError):
        Deployer(replace(config, public_key_path=str(keys[1]))).plan(str(demo_tarball))


# --- REGISTRY PACKAGES ---

PACKAGE_URL = "oci://registry.local/packages/demo:1.0.0"


@pytest.fixture
def oci_package(demo_tarball, tmp_path, registry_store):
    unpacked = tmp_path / "published"
    with tarfile.open(demo_tarball) as tar:
        tar.extractall(unpacked, filter="data")
    publish_directory(FakeRegistry(PACKAGE_URL, registry_store), unpacked)
    return PACKAGE_URL


def test_oci_partial_pull(oci_package, config, registry_factory, registry_store):
    """
    PARTIAL PULL: a confirmed selection only downloads the selected and
    required component tarballs, and the partial layout still verifies.
    """
    deploy_config = replace(config, optional_components=["extra"], confirm=True)
    plan = Deployer(deploy_config, registry_factory=registry_factory).plan(oci_package)

    assert plan.component_names == ["base", "extra"]
    assert not (plan.layout.base / "components" / "docs.tar").exists()
    assert (plan.directories["base"].files / "0" / "motd").is_file()


def test_oci_full_pull_without_confirmation(oci_package, config, registry_factory):
    deploy_config = replace(config, optional_components=["extra"])
    plan = Deployer(deploy_config, registry_factory=registry_factory).plan(oci_package)

    assert plan.component_names == ["base", "extra"]
    assert (plan.layout.base / "components" / "docs.tar").is_file()


def test_oci_load_fetches_root_manifest_once(oci_package, config, registry_factory, registry_store, tmp_path):
    deploy_config = replace(config, optional_components=["extra"], confirm=True)
    source = new_source(oci_package, deploy_config, registry_factory)
    source.load_package(PackagePaths(tmp_path / "loaded"), Deployer(deploy_config).filter(), unarchive_all=False)

    root = registry_store["tags"][("registry.local/packages/demo", "1.0.0")]
    assert source.client.fetched.count(root.digest) == 1


def test_oci_metadata_only(oci_package, config, registry_factory, tmp_path):
    source = new_source(oci_package, config, registry_factory)
    assert isinstance(source, OCISource)
    pkg, _ = source.load_package_metadata(PackagePaths(tmp_path / "meta"))
    assert pkg.metadata.name == "demo"
    assert sorted(p.name for p in (tmp_path / "meta").iterdir()) == ["checksums.txt", "zarf.yaml"]


# --- DIFFERENTIAL BUILDS ---

def _web_package(version, images, extra_components=()):
    return {
        "kind": "ZarfPackageConfig",
        "metadata": {"name": "web", "version": version},
        "components": [{"name": "web", "images": images}, *extra_components],
    }


def test_differential_build(build_package):
    reference = build_package(_web_package("1.0.0", ["nginx:1.25", "busybox:latest"],
                                           [{"name": "legacy", "images": ["old:1"]}]))[0]

    written = build_package(_web_package("2.0.0", ["nginx:1.25", "busybox:latest", "redis:7"]),
                            differential_source=str(reference))[0]

    assert written.name == "zarf-package-web-amd64-1.0.0-differential-2.0.0.tar"
    pkg = read_definition(written)
    assert pkg.build.differential is True
    assert pkg.build.differential_package_version == "1.0.0"
    assert pkg.build.differential_missing == ["legacy"]
    assert pkg.components[0].images == ["busybox:latest", "redis:7"]


def test_differential_needs_a_new_version(build_package):
    reference = build_package(_web_package("1.0.0", ["nginx:1.25"]))[0]
    with pytest.raises(StructuralError, match="must be incremented"):
        build_package(_web_package("1.0.0", ["nginx:1.25"]), differential_source=str(reference))


# --- SOURCES ---

@pytest.mark.parametrize("src, kind", [
    ("oci://ghcr.io/org/pkg:1.0.0", "oci"),
    ("https://example.com/zarf-package-a-amd64.tar", "http"),
    ("http://example.com/zarf-package-a-amd64.tar", "http"),
    ("zarf-package-a-amd64.tar", "tarball"),
    ("/tmp/zarf-package-a-amd64.tar.part000", "split"),
])
def test_identify_source(src, kind):
    assert identify_source(src) == kind


@pytest.mark.parametrize("src", ["zarf-package-a-amd64.tar.zst", "ftp://example.com/a.tar", "package.zip"])
def test_unsupported_sources(src):
    with pytest.raises(PackageFormatError):
        identify_source(src)


def _serve(content: bytes):
    def handler(request):
        if request.url.path.endswith("/demo.tar"):
            return httpx.Response(200, content=content)
        return httpx.Response(404)
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_url_source(demo_tarball, config, tmp_path):
    content = demo_tarball.read_bytes()
    url_config = replace(config, shasum=hashlib.sha256(content).hexdigest())
    source = URLSource("https://example.com/pkgs/demo.tar", url_config, client=_serve(content))

    pkg, _ = source.load_package(PackagePaths(tmp_path / "out"), EmptyFilter())
    assert [c.name for c in pkg.components] == ["base", "docs", "extra"]
    assert list(config.temp_path.glob("zarfkit-download-*")) == []


def test_url_source_shasum_mismatch(demo_tarball, config, tmp_path):
    source = URLSource("https://example.com/pkgs/demo.tar", replace(config, shasum="0" * 64),
                       client=_serve(demo_tarball.read_bytes()))
    with pytest.raises(IntegrityError):
        source.load_package(PackagePaths(tmp_path / "out"), EmptyFilter())


def test_url_source_http_error(config, tmp_path):
    source = URLSource("https://example.com/pkgs/missing.tar", config, client=_serve(b""))
    with pytest.raises(RegistryError, match="unable to download"):
        source.load_package_metadata(PackagePaths(tmp_path / "out"))


def test_config_from_env():
    config = ZarfConfig.from_env({"ZARFKIT_CACHE": "/c", "ZARFKIT_TMP": "/t", "ZARFKIT_ARCHITECTURE": "arm64"})
    assert (config.cache_dir, config.temp_dir, config.architecture) == ("/c", "/t", "arm64")
