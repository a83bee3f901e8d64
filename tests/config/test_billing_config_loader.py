"""Tests for BillingConfig validation and the YAML loader."""

import pytest
import yaml

from billing_config import (
    BillingConfig,
    MissingChargeTypePolicy,
    load_billing_config,
    parse_billing_config,
)
from billing_config.loader import load_yaml_file
from billing_engines.proration import ProrationMethod


def _write(tmp_path, text, name="billing.yaml"):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestBillingConfig:
    def test_defaults(self):
        config = BillingConfig()

        assert config.default_payment_term_days == 0
        assert config.invoice_prefix == "INV"
        assert config.credit_note_prefix == "CN"
        assert config.rent_charge_type_code == "RENT"
        assert config.missing_charge_type_policy == MissingChargeTypePolicy.SKIP
        assert config.default_proration_method == ProrationMethod.ACTUAL_DAYS_IN_MONTH
        assert config.max_run_error_messages == 10

    def test_string_enums_coerced(self):
        config = BillingConfig(
            missing_charge_type_policy="fail",
            default_proration_method="ThirtyDayMonth",
        )

        assert config.missing_charge_type_policy == MissingChargeTypePolicy.FAIL
        assert config.default_proration_method == ProrationMethod.THIRTY_DAY_MONTH

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"default_payment_term_days": -1}, "default_payment_term_days cannot be negative"),
            ({"invoice_prefix": " "}, "invoice_prefix cannot be blank"),
            ({"credit_note_prefix": ""}, "credit_note_prefix cannot be blank"),
            ({"rent_charge_type_code": ""}, "rent_charge_type_code cannot be blank"),
            ({"max_run_error_messages": 0}, "max_run_error_messages must be at least 1"),
        ],
    )
    def test_invalid_values(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            BillingConfig(**kwargs)

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            BillingConfig(missing_charge_type_policy="ignore")


class TestParseBillingConfig:
    def test_partial_mapping_keeps_defaults(self):
        config = parse_billing_config({"default_payment_term_days": 15})

        assert config.default_payment_term_days == 15
        assert config.invoice_prefix == "INV"

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValueError, match="Unknown billing config keys: colour, tax"):
            parse_billing_config({"tax": 1, "colour": "red"})


class TestLoadBillingConfig:
    def test_no_path_gives_defaults(self):
        assert load_billing_config() == BillingConfig()

    def test_flat_file(self, tmp_path):
        path = _write(
            tmp_path,
            "default_payment_term_days: 7\n"
            "invoice_prefix: RNT\n"
            "missing_charge_type_policy: fail\n",
        )

        config = load_billing_config(path)

        assert config.default_payment_term_days == 7
        assert config.invoice_prefix == "RNT"
        assert config.missing_charge_type_policy == MissingChargeTypePolicy.FAIL

    def test_billing_section_unwrapped(self, tmp_path):
        path = _write(
            tmp_path,
            "billing:\n"
            "  credit_note_prefix: CRN\n"
            "  default_proration_method: ThirtyDayMonth\n",
        )

        config = load_billing_config(str(path))

        assert config.credit_note_prefix == "CRN"
        assert config.default_proration_method == ProrationMethod.THIRTY_DAY_MONTH

    def test_empty_file_gives_defaults(self, tmp_path):
        assert load_billing_config(_write(tmp_path, "")) == BillingConfig()

    def test_unknown_key_in_file(self, tmp_path):
        path = _write(tmp_path, "invoice_prefx: RNT\n")

        with pytest.raises(ValueError, match="invoice_prefx"):
            load_billing_config(path)

    def test_invalid_value_in_file(self, tmp_path):
        path = _write(tmp_path, "default_payment_term_days: -3\n")

        with pytest.raises(ValueError, match="cannot be negative"):
            load_billing_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_billing_config(tmp_path / "nope.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = _write(tmp_path, "invoice_prefix: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            load_billing_config(path)

    def test_list_document_rejected(self, tmp_path):
        path = _write(tmp_path, "- INV\n- CN\n")

        with pytest.raises(ValueError, match="expected a mapping"):
            load_yaml_file(path)

    def test_load_is_logged(self, tmp_path, captured_logs):
        path = _write(tmp_path, "default_payment_term_days: 30\n")

        load_billing_config(path)

        records = [r for r in captured_logs() if r["message"] == "billing_config_loaded"]
        assert records[0]["config_path"] == str(path)
        assert records[0]["default_payment_term_days"] == 30
        assert records[0]["missing_charge_type_policy"] == "skip"
