import pytest

from zarfkit.core.errors import (
    ComponentNotFoundError,
    FilterError,
    MultipleSameGroupError,
    NoDefaultOrSelectionError,
    PackageFormatError,
)
from zarfkit.core.models import Package
from zarfkit.filters.deploy import ForDeploy, group_components, uses_required_logic
from zarfkit.filters.differential import Differential, keep_image, keep_repo
from zarfkit.filters.select import (
    BySelectState,
    SelectState,
    included_or_excluded,
    levenshtein,
    near_misses,
    parse_requested,
)
from zarfkit.filters.strategy import ByArchitectureAndOS, Combine, EmptyFilter, ForCreate


def make_package(components, version="v0.40.0"):
    return Package.from_dict({
        "kind": "ZarfPackageConfig",
        "metadata": {"name": "demo"},
        "build": {"version": version},
        "components": components,
    })


def names(components):
    return [c.name for c in components]


@pytest.fixture
def app_package():
    return make_package([
        {"name": "init", "required": True},
        {"name": "web"},
        {"name": "db", "default": True},
        {"name": "tools"},
    ])


# --- SELECTION PRIMITIVES ---

@pytest.mark.parametrize("raw, expected", [
    (None, []),
    ("", []),
    (" a, ,b ", ["a", "b"]),
    (["a", " ", "-c"], ["a", "-c"]),
])
def test_parse_requested(raw, expected):
    assert parse_requested(raw) == expected


@pytest.mark.parametrize("requested, state", [
    ([], SelectState.UNKNOWN),
    (["web"], SelectState.INCLUDED),
    (["-web"], SelectState.EXCLUDED),
    (["w*", "-web"], SelectState.EXCLUDED),
    (["-w*", "web"], SelectState.INCLUDED),
    (["db"], SelectState.UNKNOWN),
    (["W*"], SelectState.UNKNOWN),
])
def test_last_matching_request_decides(requested, state):
    assert included_or_excluded("web", requested)[0] is state


def test_included_or_excluded_reports_matches():
    _, matched = included_or_excluded("web", ["w*", "db", "-web"])
    assert matched == ["w*", "-web"]


@pytest.mark.parametrize("a, b, distance", [
    ("kitten", "sitting", 3),
    ("", "abc", 3),
    ("same", "same", 0),
    ("web", "wbe", 2),
])
def test_levenshtein(a, b, distance):
    assert levenshtein(a, b) == distance
    assert levenshtein(b, a) == distance


def test_near_misses_ignore_exclusion_prefix(app_package):
    assert "web" in near_misses("-wbe", app_package.components)
    assert near_misses("completely-unrelated-name", app_package.components) == []


def test_by_select_state(app_package):
    assert names(BySelectState().apply(app_package)) == ["init", "web", "db", "tools"]
    assert names(BySelectState("w*,tools,-tools").apply(app_package)) == ["web"]


# --- DEPLOY SELECTION ---

def test_defaults_mode_takes_required_and_defaults():
    """
    NO REQUEST LIST: singletons are deployed when required or default, each
    multi-member group yields its default.
    """
    pkg = make_package([
        {"name": "a", "required": True},
        {"name": "b"},
        {"name": "c", "default": True},
        {"name": "x", "group": "g1"},
        {"name": "y", "group": "g1", "default": True},
        {"name": "p", "group": "g2"},
        {"name": "q", "group": "g2", "default": True},
    ])
    assert names(ForDeploy().apply(pkg)) == ["a", "c", "y", "q"]


def test_defaults_mode_group_without_default():
    """
    NO REQUEST LIST: a multi-member group with no default cannot be decided.
    """
    pkg = make_package([
        {"name": "a", "group": "g"},
        {"name": "b", "group": "g"},
    ])
    with pytest.raises(NoDefaultOrSelectionError) as exc:
        ForDeploy().apply(pkg)
    assert exc.value.candidates == ["a", "b"]


def test_partial_selection_adds_required_and_defaults(app_package):
    assert names(ForDeploy("web").apply(app_package)) == ["init", "web", "db"]


def test_partial_selection_honours_exclusions(app_package):
    assert names(ForDeploy("web,-db").apply(app_package)) == ["init", "web"]
    assert names(ForDeploy(["web", "-w*"]).apply(app_package)) == ["init", "db"]


def test_required_component_cannot_be_excluded(app_package):
    assert names(ForDeploy("-init,tools").apply(app_package)) == ["init", "db", "tools"]


def test_glob_selection_keeps_package_order(app_package):
    assert names(ForDeploy("t*,w*").apply(app_package)) == ["init", "web", "db", "tools"]


@pytest.fixture
def grouped_package():
    return make_package([
        {"name": "base", "required": True},
        {"name": "flavor-a", "group": "flavor"},
        {"name": "flavor-b", "group": "flavor", "default": True},
        {"name": "extra"},
    ])


def test_group_default_is_used_without_selection(grouped_package):
    assert names(ForDeploy("extra").apply(grouped_package)) == ["base", "flavor-b", "extra"]


def test_group_selection_overrides_default(grouped_package):
    assert names(ForDeploy("flavor-a").apply(grouped_package)) == ["base", "flavor-a"]


def test_two_members_of_one_group(grouped_package):
    with pytest.raises(MultipleSameGroupError) as exc:
        ForDeploy("flavor-*").apply(grouped_package)
    assert (exc.value.first, exc.value.second, exc.value.group) == ("flavor-a", "flavor-b", "flavor")


def test_group_without_default_or_selection():
    pkg = make_package([
        {"name": "one", "group": "pick"},
        {"name": "two", "group": "pick"},
        {"name": "other"},
    ])
    with pytest.raises(NoDefaultOrSelectionError) as exc:
        ForDeploy("other").apply(pkg)
    assert exc.value.candidates == ["one", "two"]


def test_unmatched_request_suggests_near_misses(app_package):
    with pytest.raises(ComponentNotFoundError) as exc:
        ForDeploy("web,wbe").apply(app_package)
    assert list(exc.value.missing) == ["wbe"]
    assert "web" in exc.value.suggestions
    assert "did you mean" in str(exc.value)


def test_group_components_keeps_first_seen_order(grouped_package):
    assert list(group_components(grouped_package.components)) == ["base", "flavor", "extra"]


# --- REQUIRED LOGIC BY BUILD VERSION ---

@pytest.mark.parametrize("version, legacy", [
    ("v0.32.6", True),
    ("v0.33.0", False),
    ("v0.40.0", False),
    ("", False),
    ("UnsetCLIVersion", False),
])
def test_uses_required_logic(version, legacy):
    assert uses_required_logic(make_package([], version=version)) is legacy


def test_unparsable_build_version():
    with pytest.raises(PackageFormatError):
        uses_required_logic(make_package([], version="not-a-version"))


def test_optional_flag_only_counts_for_current_packages():
    components = [{"name": "core", "optional": False}, {"name": "legacy", "required": True, "optional": True}]

    assert names(ForDeploy().apply(make_package(components))) == ["core"]
    assert names(ForDeploy().apply(make_package(components, version="v0.30.0"))) == ["legacy"]


# --- COMPOSITION ---

@pytest.fixture
def multi_arch_package():
    return make_package([
        {"name": "agent", "required": True, "only": {"cluster": {"architecture": "amd64"}}},
        {"name": "agent-arm", "required": True, "only": {"cluster": {"architecture": "arm64"}}},
        {"name": "mac-tool", "only": {"localOS": "darwin"}},
        {"name": "upstream", "only": {"flavor": "upstream"}},
        {"name": "plain"},
    ])


def test_architecture_and_os_filter(multi_arch_package):
    kept = ByArchitectureAndOS("amd64", "linux").apply(multi_arch_package)
    assert names(kept) == ["agent", "upstream", "plain"]
    assert names(ByArchitectureAndOS().apply(multi_arch_package)) == names(multi_arch_package.components)


def test_for_create_filters_on_flavor(multi_arch_package):
    assert names(ForCreate("amd64").apply(multi_arch_package)) == ["agent", "mac-tool", "plain"]
    assert names(ForCreate("amd64", "upstream").apply(multi_arch_package)) == ["agent", "mac-tool", "upstream", "plain"]


def test_combine_narrows_before_selecting(multi_arch_package):
    strategy = Combine(ByArchitectureAndOS("amd64", "linux"), ForDeploy("plain"))
    assert names(strategy.apply(multi_arch_package)) == ["agent", "plain"]
    assert len(multi_arch_package.components) == 5


def test_combine_wraps_failures(multi_arch_package):
    strategy = Combine(EmptyFilter(), ByArchitectureAndOS("amd64"), ForDeploy("agent-arm"))
    with pytest.raises(FilterError) as exc:
        strategy.apply(multi_arch_package)
    assert exc.value.strategy == "ForDeploy"
    assert isinstance(exc.value.cause, ComponentNotFoundError)


# --- DIFFERENTIAL ---

def test_keep_image_floating_tags_always_survive():
    assert keep_image("busybox", {"busybox"})
    assert keep_image("busybox:latest", {"busybox:latest"})
    assert not keep_image("nginx:1.25", {"nginx:1.25"})
    assert keep_image("nginx:1.26", {"nginx:1.25"})


@pytest.mark.parametrize("repo, kept", [
    ("https://github.com/org/app.git@v1.0.0", False),
    ("https://github.com/org/app.git@" + "a" * 40, False),
    ("https://github.com/org/app.git@refs/heads/main", True),
    ("https://github.com/org/app.git", True),
])
def test_keep_repo(repo, kept):
    assert keep_repo(repo, {repo}) is kept


def test_differential_strips_shipped_resources():
    reference = make_package([{
        "name": "web",
        "images": ["nginx:1.25", "busybox:latest"],
        "repos": ["https://github.com/org/app.git@v1.0.0"],
    }])
    pkg = make_package([{
        "name": "web",
        "images": ["nginx:1.25", "busybox:latest", "redis:7"],
        "repos": ["https://github.com/org/app.git@v1.0.0", "https://github.com/org/app.git@v1.1.0"],
    }, {"name": "empty"}])

    kept = Differential.from_package(reference).apply(pkg)
    assert names(kept) == ["web", "empty"]
    assert kept[0].images == ["busybox:latest", "redis:7"]
    assert kept[0].repos == ["https://github.com/org/app.git@v1.1.0"]
    assert pkg.components[0].images == ["nginx:1.25", "busybox:latest", "redis:7"]
