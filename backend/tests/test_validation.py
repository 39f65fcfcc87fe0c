"""
Tests for the validation boundary: sanitization, error translation,
payload parsing and the password-change rules.
"""

import pytest

from farmagenius.exceptions import ValidationError
from farmagenius.schemas.mapping import MappingCreateRequest
from farmagenius.schemas.report import SaveReportRequest
from farmagenius.schemas.user import (
    SignupRequest,
    password_policy_violations,
    validate_password_change,
)
from farmagenius.validation import MAX_STRING_LENGTH, parse_payload, sanitize_string


class TestSanitizeString:

    def test_strips_script_blocks_and_tags(self):
        assert sanitize_string("  <b>Cápsula</b><script>alert(1)</script> ") == "Cápsula"

    def test_removes_javascript_scheme(self):
        assert sanitize_string("javascript:alert(1)") == "alert(1)"

    def test_truncates_long_values(self):
        assert len(sanitize_string("x" * (MAX_STRING_LENGTH + 50))) == MAX_STRING_LENGTH

    def test_schema_fields_are_sanitized(self):
        payload = parse_payload(
            MappingCreateRequest,
            {"name": "<i>Padrão</i>", "mappingData": {"CAPS": "Cápsula"}},
        )
        assert payload.name == "Padrão"


class TestParsePayload:

    def test_missing_body(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_payload(SignupRequest, None)
        assert exc_info.value.messages == ["Dados não fornecidos"]

    def test_empty_object(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_payload(SignupRequest, {})
        assert exc_info.value.messages == ["Dados não fornecidos"]

    def test_reports_every_violation(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_payload(SignupRequest, {"name": "", "email": "nope", "password": "123"})
        messages = exc_info.value.messages
        assert "Nome é obrigatório" in messages
        assert "Email inválido" in messages
        assert "Senha deve ter pelo menos 8 caracteres" in messages

    def test_missing_field_is_named(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_payload(SaveReportRequest, {"title": "Dia 10", "date": "10/03"})
        assert exc_info.value.messages == ["Campo obrigatório: items"]

    def test_email_is_normalized(self):
        payload = parse_payload(
            SignupRequest,
            {"name": "Ana", "email": "  Ana@Farma.TEST ", "password": "12345678"},
        )
        assert payload.email == "ana@farma.test"


class TestPasswordPolicy:

    def test_strong_password_passes(self):
        assert password_policy_violations("Nova@Senha1") == []

    def test_every_missing_class_is_reported(self):
        assert password_policy_violations("abc") == [
            "Nova senha deve ter pelo menos 8 caracteres",
            "Nova senha deve ter pelo menos uma letra maiúscula",
            "Nova senha deve ter pelo menos um número",
            "Nova senha deve ter pelo menos um caractere especial",
        ]

    def test_valid_change(self):
        payload = validate_password_change(
            {"currentPassword": "Velha@123", "newPassword": "Nova@Senha1", "confirmPassword": "Nova@Senha1"}
        )
        assert payload.new_password == "Nova@Senha1"

    def test_confirmation_must_match(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_password_change(
                {"currentPassword": "Velha@123", "newPassword": "Nova@Senha1", "confirmPassword": "Outra@Senha1"}
            )
        assert exc_info.value.messages == ["Senhas não coincidem"]

    def test_same_password_rejected_even_when_policy_passes(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_password_change(
                {"currentPassword": "Igual@123", "newPassword": "Igual@123", "confirmPassword": "Igual@123"}
            )
        assert exc_info.value.messages == ["A nova senha deve ser diferente da senha atual"]

    def test_same_password_combined_with_policy_violations(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_password_change(
                {"currentPassword": "fraca", "newPassword": "fraca", "confirmPassword": "fraca"}
            )
        messages = exc_info.value.messages
        assert messages[0] == "A nova senha deve ser diferente da senha atual"
        assert "Nova senha deve ter pelo menos 8 caracteres" in messages
        assert "Nova senha deve ter pelo menos uma letra maiúscula" in messages


class TestReportLimits:

    def _body(self, **overrides):
        body = {"title": "Dia 10", "date": "10/03", "items": []}
        body.update(overrides)
        return body

    def test_title_longer_than_column(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_payload(SaveReportRequest, self._body(title="T" * 300))
        assert exc_info.value.messages == ["Título do relatório muito longo"]

    @pytest.mark.parametrize("value", ["19/10/2026", "2026-10-19", "1/3", "32/01", "10/13"])
    def test_date_must_be_day_and_month(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_payload(SaveReportRequest, self._body(date=value))
        assert exc_info.value.messages == ["Data do relatório deve estar no formato DD/MM"]

    def test_item_text_bounded_by_column(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_payload(SaveReportRequest, self._body(items=[{"bucket": "h" * 51}]))
        assert exc_info.value.messages == ["Campo horario muito longo (máximo 50 caracteres)"]

    def test_item_text_at_limit_is_accepted(self):
        payload = parse_payload(SaveReportRequest, self._body(items=[{"linha": "L" * 100}]))
        assert payload.items[0].linha == "L" * 100


class TestMappingData:

    def test_keys_and_targets_are_sanitized(self):
        payload = parse_payload(
            MappingCreateRequest,
            {"name": "Padrão", "mappingData": {"<script>alert(1)</script>K": "<img onerror=x>V"}},
        )
        assert payload.mapping_data == {"K": "V"}

    def test_key_empty_after_sanitizing(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_payload(MappingCreateRequest, {"name": "Padrão", "mappingData": {"<b></b>": "V"}})
        assert exc_info.value.messages == ["Chave do mapeamento não pode ser vazia"]

    def test_entry_too_long(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_payload(MappingCreateRequest, {"name": "Padrão", "mappingData": {"CAPS": "c" * 256}})
        assert exc_info.value.messages == ["Entrada do mapeamento muito longa"]
