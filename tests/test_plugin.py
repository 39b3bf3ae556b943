"""Tests for the pytest plugin, run against inline pytest sessions."""

import re

import pytest

from trx_helpers import NS, error_message, parse_trx, result_files, results_by_name

SAMPLE_TESTS = """
import pytest


def test_passes():
    print("hello from a")


def test_fails():
    assert 1 == 2, "boom"


@pytest.mark.skip(reason="later")
def test_skipped():
    pass


class TestGroup:
    def test_in_class(self):
        pass
"""


@pytest.fixture
def run_trx(pytester, monkeypatch):
    """Run pytest inline with only the trx plugin loaded."""
    monkeypatch.setenv("PYTEST_DISABLE_PLUGIN_AUTOLOAD", "1")
    monkeypatch.delenv("TRX_REPORTER_FILE", raising=False)

    def _run(*args):
        return pytester.runpytest("-p", "trx_reporter.plugin", "-p", "no:cacheprovider", *args)

    return _run


def report_from_stdout(result):
    text = result.stdout.str()
    start = text.index("<?xml")
    end = text.index("</TestRun>") + len("</TestRun>")
    return parse_trx(text[start:end])


def test_disabled_by_default(pytester, run_trx):
    pytester.makepyfile(test_sample=SAMPLE_TESTS)

    result = run_trx()

    result.assert_outcomes(passed=2, failed=1, skipped=1)
    assert "<?xml" not in result.stdout.str()
    assert not list(pytester.path.glob("**/*.trx"))


def test_report_to_stdout(pytester, run_trx):
    pytester.makepyfile(test_sample=SAMPLE_TESTS)

    result = run_trx("--trx")

    result.assert_outcomes(passed=2, failed=1, skipped=1)
    results = results_by_name(report_from_stdout(result))
    assert set(results) == {
        "test_sample.py test_passes",
        "test_sample.py test_fails",
        "test_sample.py test_skipped",
        "test_sample.py TestGroup test_in_class",
    }
    assert results["test_sample.py test_passes"].get("outcome") == "Passed"
    assert results["test_sample.py test_fails"].get("outcome") == "Failed"
    assert "boom" in error_message(results["test_sample.py test_fails"])
    assert results["test_sample.py test_skipped"].get("outcome") == "Pending"
    stdout = results["test_sample.py test_passes"].find("t:Output/t:StdOut", NS)
    assert "hello from a" in stdout.text


def test_report_to_file(pytester, run_trx):
    pytester.makepyfile(test_sample=SAMPLE_TESTS)

    run_trx("--trx-output", "results/out.trx")

    report = pytester.path / "results" / "out.trx"
    root = parse_trx(report.read_text(encoding="utf-8"))
    assert len(results_by_name(root)) == 4
    method = root.find("t:TestDefinitions/t:UnitTest/t:TestMethod", NS)
    assert method.get("codeBase") == "test_sample.py"


def test_environment_variable_enables_report(pytester, run_trx, monkeypatch):
    pytester.makepyfile(test_sample=SAMPLE_TESTS)
    monkeypatch.setenv("TRX_REPORTER_FILE", "env-[hash].trx")

    run_trx()

    written = list(pytester.path.glob("env-*.trx"))
    assert len(written) == 1
    assert re.match(r"^env-[0-9a-f]{32}\.trx$", written[0].name)


def test_ini_options(pytester, run_trx):
    pytester.makepyfile(test_sample=SAMPLE_TESTS)
    pytester.makeini(
        """
        [pytest]
        trx_output = from-ini.trx
        trx_exclude_pending = true
        trx_warn_excluded_pending = true
        """
    )

    result = run_trx()

    root = parse_trx((pytester.path / "from-ini.trx").read_text(encoding="utf-8"))
    assert "test_sample.py test_skipped" not in results_by_name(root)
    assert "##[warning]Excluded 1 test because it is marked as Pending." in result.stderr.str()


def test_exclude_pending_without_warning(pytester, run_trx):
    pytester.makepyfile(test_sample=SAMPLE_TESTS)

    result = run_trx("--trx-output", "out.trx", "--trx-exclude-pending")

    root = parse_trx((pytester.path / "out.trx").read_text(encoding="utf-8"))
    assert len(results_by_name(root)) == 3
    assert "##[warning]" not in result.stderr.str()


def test_treat_pending_as_not_executed(pytester, run_trx):
    pytester.makepyfile(test_sample=SAMPLE_TESTS)

    run_trx("--trx-output", "out.trx", "--trx-treat-pending-as-not-executed")

    root = parse_trx((pytester.path / "out.trx").read_text(encoding="utf-8"))
    assert results_by_name(root)["test_sample.py test_skipped"].get("outcome") == "NotExecuted"


def test_setup_error_is_reported_as_failure(pytester, run_trx):
    pytester.makepyfile(
        test_fixture="""
        import pytest


        @pytest.fixture
        def broken():
            raise RuntimeError("fixture exploded")


        def test_uses_broken(broken):
            pass


        def test_independent():
            pass
        """
    )

    run_trx("--trx-output", "out.trx")

    results = results_by_name(parse_trx((pytester.path / "out.trx").read_text(encoding="utf-8")))
    assert results["test_fixture.py test_uses_broken"].get("outcome") == "Failed"
    assert "fixture exploded" in error_message(results["test_fixture.py test_uses_broken"])
    assert results["test_fixture.py test_independent"].get("outcome") == "Passed"


def test_tests_left_unrun_after_setup_failure(pytester, run_trx):
    pytester.makepyfile(
        test_stop="""
        import pytest


        @pytest.fixture
        def broken():
            raise RuntimeError("fixture exploded")


        def test_first_passes():
            pass


        def test_uses_broken(broken):
            pass


        def test_never_runs():
            pass
        """
    )

    run_trx("--trx-output", "out.trx", "-x")

    results = results_by_name(parse_trx((pytester.path / "out.trx").read_text(encoding="utf-8")))
    assert results["test_stop.py test_first_passes"].get("outcome") == "Passed"
    never = results["test_stop.py test_never_runs"]
    assert never.get("outcome") == "Failed"
    assert error_message(never) == 'Not executed due to "setup" of "test_uses_broken" on "test_stop.py"'


def test_function_fixture_failure_leaves_siblings_alone(pytester, run_trx):
    pytester.makepyfile(
        test_mod="""
        import pytest


        @pytest.fixture
        def broken():
            raise RuntimeError("fixture exploded")


        def test_uses_broken(broken):
            pass


        @pytest.mark.skip(reason="later")
        def test_skipped():
            pass


        def test_after():
            pass
        """
    )

    run_trx("--trx-output", "out.trx")

    results = results_by_name(parse_trx((pytester.path / "out.trx").read_text(encoding="utf-8")))
    assert "fixture exploded" in error_message(results["test_mod.py test_uses_broken"])
    skipped = results["test_mod.py test_skipped"]
    assert skipped.get("outcome") == "Pending"
    assert error_message(skipped) is None
    assert results["test_mod.py test_after"].get("outcome") == "Passed"
    assert error_message(results["test_mod.py test_after"]) is None


def test_teardown_error_fails_passed_test(pytester, run_trx):
    pytester.makepyfile(
        test_teardown="""
        import pytest


        @pytest.fixture
        def leaky():
            yield
            raise RuntimeError("teardown exploded")


        def test_leaky(leaky):
            pass
        """
    )

    run_trx("--trx-output", "out.trx")

    result = results_by_name(parse_trx((pytester.path / "out.trx").read_text(encoding="utf-8")))["test_teardown.py test_leaky"]
    assert result.get("outcome") == "Failed"
    assert "teardown exploded" in error_message(result)


def test_attachment_fixture(pytester, run_trx):
    pytester.makepyfile(
        test_attach="""
        def test_with_attachment(trx_attachment, tmp_path):
            shot = tmp_path / "screenshot.png"
            shot.write_bytes(b"png")
            trx_attachment(shot)
        """
    )

    run_trx("--trx-output", "results/out.trx")

    root = parse_trx((pytester.path / "results" / "out.trx").read_text(encoding="utf-8"))
    result = results_by_name(root)["test_attach.py test_with_attachment"]
    assert result_files(result) == ["screenshot.png"]
    copied = pytester.path / "results" / "out" / "In" / result.get("relativeResultsDirectory") / "screenshot.png"
    assert copied.read_bytes() == b"png"


def test_attachment_fixture_without_report(pytester, run_trx):
    pytester.makepyfile(
        test_attach="""
        def test_with_attachment(trx_attachment):
            trx_attachment("does-not-matter.png")
        """
    )

    result = run_trx()

    result.assert_outcomes(passed=1)


def test_results_stashed_on_config(pytester, run_trx):
    pytester.makepyfile(test_sample=SAMPLE_TESTS)
    pytester.makeconftest(
        """
        import pytest

        from trx_reporter.plugin import TEST_RESULTS_KEY


        @pytest.hookimpl(trylast=True)
        def pytest_unconfigure(config):
            results = config.stash.get(TEST_RESULTS_KEY, None)
            print(f"stashed={len(results.tests)} passes={results.stats.passes} failures={results.stats.failures}")
        """
    )

    result = run_trx("--trx-output", "out.trx", "-s")

    result.stdout.fnmatch_lines(["*stashed=4 passes=2 failures=1*"])


def test_no_tests_collected_still_writes_report(pytester, run_trx):
    run_trx("--trx-output", "empty.trx")

    root = parse_trx((pytester.path / "empty.trx").read_text(encoding="utf-8"))
    assert results_by_name(root) == {}
