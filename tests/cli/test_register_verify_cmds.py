"""Tests for ``medauth register-product`` and ``medauth verify-product``."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, update

from medauth.core.fingerprint import is_fingerprint
from medauth.core.store import products


def tamper_batch(state_dir: Path, product_id: str, batch_number: str) -> None:
    """Edit the metadata database directly, bypassing the engine."""
    engine = create_engine(f"sqlite:///{state_dir / 'metadata.db'}")
    with engine.begin() as conn:
        conn.execute(
            update(products)
            .where(products.c.product_id == product_id)
            .values(batch_number=batch_number)
        )
    engine.dispose()


class TestRegisterProduct:

    def test_text_output(self, invoke) -> None:
        result = invoke("register-product", "P-1", "Aspirin", "B-42")
        assert result.exit_code == 0, result.output
        assert "Product Registered" in result.output
        assert "Aspirin" in result.output

    def test_json_output(self, invoke_json) -> None:
        result, data = invoke_json("register-product", "P-1", "Aspirin", "B-42")
        assert result.exit_code == 0
        assert data["product_id"] == "P-1"
        assert is_fingerprint(data["fingerprint"])
        assert data["record"]["batch_number"] == "B-42"
        assert data["record"]["expires_at"].endswith("Z")

    def test_duplicate_exits_2(self, invoke) -> None:
        invoke("register-product", "P-1", "Aspirin", "B-42")
        result = invoke("register-product", "P-1", "Aspirin", "B-43")
        assert result.exit_code == 2
        assert "AlreadyExistsError" in result.output
        assert "product_id=P-1" in result.output

    def test_empty_argument_exits_2(self, invoke) -> None:
        result = invoke("register-product", "P-1", "", "B-42")
        assert result.exit_code == 2
        assert "product_type is required" in result.output

    def test_unprivileged_identity_exits_2(self, invoke, stranger: str) -> None:
        result = invoke("--identity", stranger, "register-product", "P-1", "Aspirin", "B-42")
        assert result.exit_code == 2
        assert "UnauthorizedError" in result.output

    def test_missing_arguments_shows_usage(self, invoke) -> None:
        result = invoke("register-product", "P-1")
        assert result.exit_code == 2
        assert "Missing argument" in result.output or "Usage" in result.output


class TestVerifyProduct:

    def test_authentic(self, invoke) -> None:
        invoke("register-product", "P-1", "Aspirin", "B-42")
        result = invoke("verify-product", "P-1")
        assert result.exit_code == 0, result.output
        assert "AUTHENTIC" in result.output
        assert "NOT AUTHENTIC" not in result.output

    def test_authentic_json(self, invoke_json) -> None:
        _, registered = invoke_json("register-product", "P-1", "Aspirin", "B-42")
        result, data = invoke_json("verify-product", "P-1")
        assert result.exit_code == 0
        assert data["is_authentic"] is True
        assert data["ledger_fingerprint"] == registered["fingerprint"]
        assert data["store_fingerprint"] == registered["fingerprint"]

    def test_tampered_row_exits_1(self, invoke, invoke_json, state_dir: Path) -> None:
        invoke("register-product", "P-1", "Aspirin", "B-42")
        tamper_batch(state_dir, "P-1", "B-FORGED")
        result, data = invoke_json("verify-product", "P-1")
        assert result.exit_code == 1
        assert data["is_authentic"] is False
        assert data["record"]["batch_number"] == "B-FORGED"
        assert data["store_fingerprint"] != data["ledger_fingerprint"]

    def test_tampered_row_text(self, invoke, state_dir: Path) -> None:
        invoke("register-product", "P-1", "Aspirin", "B-42")
        tamper_batch(state_dir, "P-1", "B-FORGED")
        result = invoke("verify-product", "P-1")
        assert result.exit_code == 1
        assert "NOT AUTHENTIC" in result.output

    def test_unknown_product_exits_2(self, invoke) -> None:
        result = invoke("verify-product", "P-404")
        assert result.exit_code == 2
        assert "NotFoundError" in result.output

    def test_unknown_product_json_error(self, invoke_json) -> None:
        result, data = invoke_json("verify-product", "P-404")
        assert result.exit_code == 2
        assert data["type"] == "NotFoundError"
        assert data["product_id"] == "P-404"
        assert data["operation"] == "get"
