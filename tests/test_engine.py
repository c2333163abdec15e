"""Tests for the validation engine."""

import random
import threading
import time

import pytest

from dataknobs_rules import (
    ConfigurationError,
    EmailRule,
    ErrorRepository,
    FunctionRule,
    MemoryErrorRepository,
    PersistenceError,
    RangeRule,
    RequiredRule,
    RuleSet,
    RuleSetNotFoundError,
    RuleSetRegistry,
    Severity,
    ValidationConfig,
    ValidationEngine,
    ValidationFailure,
    ValidationTimeoutError,
    validate_field,
)

CRITICAL_FIELD_RULE = RequiredRule()  # critical when the value is missing
WARNING_FIELD_RULE = RangeRule(0, 10)  # warning when the value is 20


def engine_for(rule_set, **config):
    return ValidationEngine(config=ValidationConfig(**config)).register(rule_set.name, rule_set)


class FailingRepository(ErrorRepository):
    """Repository whose storage is unavailable."""

    def save_errors(self, data_type, result):
        raise PersistenceError(data_type, "storage offline")


class TestValidateField:
    """Test running the rules of one field."""

    def test_all_rules_run_in_order(self):
        """Test every rule runs even after a critical failure."""
        calls = []

        def recording(name, ok):
            def check(value):
                calls.append(name)
                return ok
            return FunctionRule(check, code=name)

        errors = validate_field("x", [recording("A", False), recording("B", True), recording("C", False)], 1)
        assert calls == ["A", "B", "C"]
        assert [e.code for e in errors] == ["A", "C"]
        assert all(e.field_name == "x" for e in errors)

    def test_unexpected_exception_becomes_error(self):
        """Test a crashing rule is reported instead of aborting."""
        def crash(value):
            raise RuntimeError("boom")

        errors = validate_field("x", [FunctionRule(crash), RequiredRule()], None)
        assert [e.code for e in errors] == ["RULE_ERROR", "REQ_001"]
        assert errors[0].severity is Severity.CRITICAL
        assert "boom" in errors[0].message


class TestEndToEnd:
    """Test the reference user scenario."""

    def test_user_record(self, engine):
        """Test the weak password and out-of-range age are reported."""
        record = {"email": "test@example.com", "password": "weak", "age": 150}
        result = engine.validate("user", record)

        assert [(e.field_name, e.code, e.severity) for e in result.errors] == [
            ("password", "PWD_002", Severity.CRITICAL),
            ("age", "RANGE_002", Severity.WARNING),
        ]
        assert "too short" in result.errors[0].message
        assert "0 - 120" in result.errors[1].message
        assert result.is_valid is False
        assert result.has_critical_error is True
        assert result.data_type == "user"

    def test_valid_user_record(self, engine):
        """Test a fully valid record."""
        record = {"email": "alice@example.com", "password": "s3cret!pass", "age": 30}
        result = engine.validate("user", record)
        assert result.is_valid
        assert result.errors == ()

    def test_missing_fields_read_as_none(self, engine):
        """Test absent keys behave like explicit None values."""
        absent = engine.validate("user", {})
        explicit = engine.validate("user", {"email": None, "password": None, "age": None})

        codes = [e.code for e in absent.errors]
        assert codes == [e.code for e in explicit.errors]
        assert codes[0] == "EMAIL_001"

    def test_unruled_fields_are_ignored(self, engine):
        """Test fields without rules are never validated."""
        record = {"email": "a@b.co", "password": "s3cret!pass", "age": 1, "extra": object()}
        assert engine.validate("user", record).is_valid

    def test_results_persisted(self, engine, repository):
        """Test results are handed to the repository when configured."""
        engine.validate("user", {"email": "test@example.com", "password": "weak", "age": 150})
        engine.validate("user", {"email": "bad", "password": "s3cret!pass", "age": 5})

        assert [e.code for e in repository.errors_for("user")] == ["PWD_002", "RANGE_002", "EMAIL_002"]

    def test_not_persisted_by_default(self, registry, repository):
        """Test persistence is off unless enabled."""
        engine = ValidationEngine(registry, ValidationConfig(stop_on_critical=False), repository)
        engine.validate("user", {})
        assert repository.count() == 0

    def test_validate_many(self, engine):
        """Test one result per record."""
        results = engine.validate_many("user", [
            {"email": "a@b.co", "password": "s3cret!pass", "age": 3},
            {"email": "nope", "password": "s3cret!pass", "age": 3},
        ])
        assert [r.is_valid for r in results] == [True, False]


class TestRuleSetLookup:
    """Test unknown data types."""

    def test_unknown_type_raises_by_default(self, engine):
        """Test strict mode surfaces a configuration error."""
        with pytest.raises(RuleSetNotFoundError):
            engine.validate("order", {"id": 1})

    def test_unknown_type_lenient(self, registry):
        """Test non-strict mode treats unknown types as valid."""
        engine = ValidationEngine(registry, ValidationConfig(strict_types=False))
        result = engine.validate("order", {"id": 1})
        assert result.is_valid
        assert result.data_type == "order"

    def test_rule_set_without_fields(self):
        """Test records with no applicable rules are valid."""
        engine = engine_for(RuleSet.builder("empty").build())
        result = engine.validate("empty", {"a": 1, "b": None})
        assert result.is_valid
        assert result.errors == ()


class TestStopOnCritical:
    """Test field-level short-circuiting."""

    def test_critical_first_skips_later_fields(self):
        """Test [A, B]: only A's critical error is reported."""
        rule_set = (
            RuleSet.builder("t")
            .add_rule("A", CRITICAL_FIELD_RULE)
            .add_rule("B", WARNING_FIELD_RULE)
            .build()
        )
        result = engine_for(rule_set, parallelism=1).validate("t", {"B": 20})
        assert [(e.field_name, e.code) for e in result.errors] == [("A", "REQ_001")]

    def test_critical_last_keeps_earlier_fields(self):
        """Test [B, A]: B already ran, so both errors are reported."""
        rule_set = (
            RuleSet.builder("t")
            .add_rule("B", WARNING_FIELD_RULE)
            .add_rule("A", CRITICAL_FIELD_RULE)
            .build()
        )
        result = engine_for(rule_set, parallelism=1).validate("t", {"B": 20})
        assert [(e.field_name, e.code) for e in result.errors] == [("B", "RANGE_002"), ("A", "REQ_001")]

    def test_disabled_runs_every_field(self):
        """Test all fields run when stop_on_critical is off."""
        rule_set = (
            RuleSet.builder("t")
            .add_rule("A", CRITICAL_FIELD_RULE)
            .add_rule("B", WARNING_FIELD_RULE)
            .build()
        )
        result = engine_for(rule_set, parallelism=1, stop_on_critical=False).validate("t", {"B": 20})
        assert [e.field_name for e in result.errors] == ["A", "B"]

    def test_whole_field_runs_after_critical(self):
        """Test remaining rules of the failing field still run."""
        rule_set = (
            RuleSet.builder("t")
            .add_rules("A", CRITICAL_FIELD_RULE, FunctionRule(lambda v: v is not None, code="A_2"))
            .add_rule("B", WARNING_FIELD_RULE)
            .build()
        )
        result = engine_for(rule_set, parallelism=1).validate("t", {"B": 20})
        assert [e.code for e in result.errors] == ["REQ_001", "A_2"]

    def test_in_flight_fields_finish(self):
        """Test fields already running when the stop happens keep their errors."""
        def slow_warning(value):
            time.sleep(0.2)
            raise ValidationFailure("SLOW_001", "slow field", Severity.WARNING)

        rule_set = (
            RuleSet.builder("t")
            .add_rule("A", CRITICAL_FIELD_RULE)
            .add_rule("B", FunctionRule(slow_warning))
            .add_rule("C", WARNING_FIELD_RULE)
            .build()
        )
        result = engine_for(rule_set, parallelism=2).validate("t", {"C": 20})
        assert [e.code for e in result.errors] == ["REQ_001", "SLOW_001"]

    def test_warnings_never_stop(self):
        """Test only CRITICAL errors trigger the stop."""
        rule_set = (
            RuleSet.builder("t")
            .add_rule("A", WARNING_FIELD_RULE)
            .add_rule("B", WARNING_FIELD_RULE)
            .build()
        )
        result = engine_for(rule_set, parallelism=1).validate("t", {"A": 20, "B": 30})
        assert [e.field_name for e in result.errors] == ["A", "B"]


class TestConcurrency:
    """Test parallel field execution."""

    def test_fields_run_concurrently(self):
        """Test fields share the pool: two barrier rules only pass together."""
        barrier = threading.Barrier(2, timeout=5)

        def meet(value):
            barrier.wait()
            return True

        rule_set = (
            RuleSet.builder("t")
            .add_rule("A", FunctionRule(meet))
            .add_rule("B", FunctionRule(meet))
            .build()
        )
        result = engine_for(rule_set, parallelism=2).validate("t", {})
        assert result.is_valid

    def test_merge_order_is_declaration_order(self):
        """Test errors follow field order regardless of completion order."""
        rng = random.Random(7)
        builder = RuleSet.builder("t")
        fields = [f"f{i:02d}" for i in range(12)]
        for name in fields:
            delay = rng.uniform(0, 0.02)

            def slow_fail(value, delay=delay):
                time.sleep(delay)
                return False

            builder.add_rule(name, FunctionRule(slow_fail, severity=Severity.WARNING))
        rule_set = builder.build()

        for parallelism in (1, 3, 8):
            result = engine_for(rule_set, parallelism=parallelism).validate("t", {})
            assert [e.field_name for e in result.errors] == fields

    def test_concurrent_validate_calls(self, engine, repository):
        """Test one engine serves many threads with persisted results intact."""
        record = {"email": "test@example.com", "password": "weak", "age": 150}
        threads = [threading.Thread(target=engine.validate, args=("user", record)) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert repository.count("user") == 40

    def test_timeout(self):
        """Test a stuck field raises ValidationTimeoutError."""
        release = threading.Event()

        def stuck(value):
            release.wait(5)
            return True

        rule_set = RuleSet.builder("t").add_rule("slow", FunctionRule(stuck)).build()
        engine = engine_for(rule_set, parallelism=1, timeout=0.05)
        try:
            with pytest.raises(ValidationTimeoutError) as exc_info:
                engine.validate("t", {})
            assert exc_info.value.pending_fields == ["slow"]
        finally:
            release.set()


class TestPersistence:
    """Test persistence failure handling."""

    def test_persist_without_repository(self, registry):
        """Test persist_errors requires a repository."""
        with pytest.raises(ConfigurationError):
            ValidationEngine(registry, ValidationConfig(persist_errors=True))

    def test_per_call_config_checked(self, registry):
        """Test a per-call config enabling persistence also needs a repository."""
        engine = ValidationEngine(registry)
        with pytest.raises(ConfigurationError):
            engine.validate("user", {}, ValidationConfig(persist_errors=True))

    def test_failure_keeps_result(self, registry):
        """Test a failing repository does not change the outcome."""
        engine = ValidationEngine(registry, ValidationConfig(persist_errors=True), FailingRepository())
        result = engine.validate("user", {"email": "test@example.com", "password": "weak", "age": 150})

        assert [e.code for e in result.errors] == ["PWD_002", "RANGE_002"]
        assert isinstance(result.persistence_error, PersistenceError)
        assert not result.persisted

    def test_per_call_config_override(self, registry):
        """Test a config passed to validate overrides the engine default."""
        repository = MemoryErrorRepository()
        engine = ValidationEngine(registry, ValidationConfig(), repository)
        engine.validate("user", {}, ValidationConfig(persist_errors=True, stop_on_critical=False))
        assert [e.code for e in repository.errors_for("user")] == ["EMAIL_001", "PWD_001"]


def test_engine_defaults():
    """Test an engine can be created with no arguments."""
    engine = ValidationEngine()
    assert isinstance(engine.registry, RuleSetRegistry)
    assert engine.config.parallelism >= 1
    assert engine.repository is None
    engine.register("e", RuleSet.builder("e").add_rule("mail", EmailRule()).build())
    assert not engine.validate("e", {"mail": "x"}).is_valid
