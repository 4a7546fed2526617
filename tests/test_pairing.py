# tests/test_pairing.py
import pytest
from unittest.mock import MagicMock, patch
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import config
from connectors.agent_directory import AgentRecord, InMemoryAgentDirectory
from core.errors import AgentNotFoundError, PairingCodeGenerationError
from engine.pairing import PairingService, extract_pairing_code, generate_code, normalize_code
from memory.binding_store import BindingStore

NOW = 1_800_000_000.0


@pytest.fixture(autouse=True)
def quiet_logs():
    with patch('engine.pairing.log'), patch('memory.binding_store.log'):
        yield


@pytest.fixture
def directory():
    return InMemoryAgentDirectory([
        AgentRecord(id="agent-1", name="Ada"),
        AgentRecord(id="agent-2", name="Paused", status="paused"),
    ])


@pytest.fixture
def service(tmp_path, directory):
    return PairingService(BindingStore(str(tmp_path / "pairing.db")), directory)


class TestCodeFormat:

    @pytest.mark.parametrize("text", ["AF7X2K", "af7x2k", "AF-7X2K", "af 7x2k", "/pair AF7X2K", "my code is AF7X2K thanks"])
    def test_extract_variants(self, text):
        assert extract_pairing_code(text) == "AF7X2K"

    @pytest.mark.parametrize("text", ["hello", "AF7X", "AFIOIO", "", None])
    def test_extract_rejects_non_codes(self, text):
        assert extract_pairing_code(text) is None

    def test_generated_codes_use_the_alphabet(self):
        for _ in range(50):
            code = generate_code()
            assert code.startswith(config.PAIRING_CODE_PREFIX)
            suffix = code[len(config.PAIRING_CODE_PREFIX):]
            assert len(suffix) == config.PAIRING_CODE_LENGTH
            assert all(c in config.PAIRING_CODE_ALPHABET for c in suffix)
            assert extract_pairing_code(code) == code

    def test_normalize(self):
        assert normalize_code(" af-7x2k ") == "AF7X2K"


class TestPairingService:

    def test_code_is_reused_until_expiry(self, service):
        first = service.get_or_create("agent-1", now=NOW)
        assert first["is_new"] is True
        assert first["expires_at"] == NOW + config.PAIRING_CODE_EXPIRY_HOURS * 3600

        again = service.get_or_create("agent-1", now=NOW + 60)
        assert again == {"code": first["code"], "expires_at": first["expires_at"], "is_new": False}

        renewed = service.get_or_create("agent-1", now=first["expires_at"] + 1)
        assert renewed["is_new"] is True

    def test_unknown_agent(self, service):
        with pytest.raises(AgentNotFoundError):
            service.get_or_create("nope", now=NOW)

    def test_inactive_agent_cannot_issue_codes(self, service):
        with pytest.raises(ValueError):
            service.get_or_create("agent-2", now=NOW)

    def test_persistent_collisions_give_up(self, directory):
        store = MagicMock()
        store.get_pairing_code.return_value = None
        store.save_pairing_code.return_value = False
        with pytest.raises(PairingCodeGenerationError):
            PairingService(store, directory).get_or_create("agent-1", now=NOW)
        assert store.save_pairing_code.call_count == config.PAIRING_CODE_MAX_ATTEMPTS

    def test_collision_retries_with_a_new_code(self, directory):
        store = MagicMock()
        store.get_pairing_code.return_value = None
        store.save_pairing_code.side_effect = [False, True]
        result = PairingService(store, directory).get_or_create("agent-1", now=NOW)
        assert result["is_new"] is True
        assert store.save_pairing_code.call_count == 2

    def test_resolve(self, service):
        code = service.get_or_create("agent-1", now=NOW)["code"]
        assert service.resolve(code.lower(), now=NOW + 1).id == "agent-1"
        assert service.resolve(code, now=NOW + config.PAIRING_CODE_EXPIRY_HOURS * 3600 + 1) is None
        assert service.resolve("AFZZZZ", now=NOW) is None

    def test_resolve_ignores_agents_deactivated_after_issue(self, service, directory):
        code = service.get_or_create("agent-1", now=NOW)["code"]
        directory.update_agent("agent-1", status="paused")
        assert service.resolve(code, now=NOW + 1) is None

    def test_revoke(self, service):
        code = service.get_or_create("agent-1", now=NOW)["code"]
        service.revoke("agent-1")
        assert service.resolve(code, now=NOW + 1) is None
