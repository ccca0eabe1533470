from sitefan.core.errors import FilterSyntaxError
from sitefan.core.filters import filter_rows, filter_sites, parse_filter
from sitefan.core.models import Site
import pytest


def _sites():
    return [
        Site(db_name="alphadb", name="alpha", site_id=1, domains=["alpha.f.acsitefactory.com"], domain="alpha.f.acsitefactory.com"),
        Site(db_name="betadb", name="beta", site_id=2, domains=["beta.f.acsitefactory.com", "www.beta.edu"], domain="www.beta.edu"),
        Site(db_name="gammadb", name="gamma-demo", site_id=3, domains=["gamma.f.acsitefactory.com"], domain="gamma.f.acsitefactory.com"),
    ]


def names(sites):
    return [s.name for s in sites]


def test_no_expression_keeps_everything():
    assert names(filter_sites(_sites(), None)) == ["alpha", "beta", "gamma-demo"]
    assert names(filter_sites(_sites(), "")) == ["alpha", "beta", "gamma-demo"]


def test_bare_value_uses_default_field():
    assert names(filter_sites(_sites(), "BETA")) == ["beta"]
    assert names(filter_sites(_sites(), "betadb", default_field="db_name")) == ["beta"]


def test_operators():
    assert names(filter_sites(_sites(), "name*=demo")) == ["gamma-demo"]
    assert names(filter_sites(_sites(), "site_id!=2")) == ["alpha", "gamma-demo"]
    assert names(filter_sites(_sites(), "domain~=/\\.EDU$/i")) == ["beta"]
    assert names(filter_sites(_sites(), "db_name~=^a")) == ["alpha"]


def test_negation_and_boolean_combination():
    assert names(filter_sites(_sites(), "!name=alpha")) == ["beta", "gamma-demo"]
    assert names(filter_sites(_sites(), "name=alpha || name=beta")) == ["alpha", "beta"]
    assert names(filter_sites(_sites(), "site_id!=1 && name*=a || name=alpha")) == ["alpha", "beta", "gamma-demo"]
    assert names(filter_sites(_sites(), "site_id!=1 && name*=demo")) == ["gamma-demo"]


def test_unknown_field_never_matches():
    assert filter_sites(_sites(), "color=red") == []
    assert filter_sites(_sites(), "!color=red") == []


def test_order_is_preserved():
    assert names(filter_sites(list(reversed(_sites())), "name*=a")) == ["gamma-demo", "beta", "alpha"]


def test_syntax_errors():
    with pytest.raises(FilterSyntaxError):
        parse_filter("name=a && ", "name")
    with pytest.raises(FilterSyntaxError):
        parse_filter("name~=(", "name")
    with pytest.raises(FilterSyntaxError):
        parse_filter("   ", "name")


def test_filter_rows_default_field_is_result():
    rows = [
        {"name": "a", "result": "Cache rebuild complete.", "status": "success", "site_id": 1},
        {"name": "b", "result": "Drush command terminated abnormally.", "status": "failure", "site_id": None},
    ]
    assert [r["name"] for r in filter_rows(rows, "result*=abnormally")] == ["b"]
    assert [r["name"] for r in filter_rows(rows, "status=success")] == ["a"]
    assert [r["name"] for r in filter_rows(rows, "site_id=")] == ["b"]
    assert filter_rows(rows, None) == rows


def test_boolean_operators_inside_slash_regex_stay_in_the_pattern():
    rows = [
        {"name": "a", "result": "a && b", "status": "success"},
        {"name": "b", "result": "a || b", "status": "success"},
        {"name": "c", "result": "a || b", "status": "failure"},
    ]
    expr = parse_filter("result~=/a \\|\\| b/ && status=success", "result")
    assert [len(c) for c in expr.clauses] == [2]
    assert [r["name"] for r in filter_rows(rows, "result~=/a && b/")] == ["a"]
    assert [r["name"] for r in filter_rows(rows, "result~=/a \\|\\| b/ && status=success")] == ["b"]
    assert [r["name"] for r in filter_rows(rows, "result~=/&&/ || status=failure")] == ["a", "c"]
