from unittest.mock import Mock

import pytest
import requests

import sandbox
from config import SandboxLimits
from conftest import DEFI_CRITERIA, DEFI_SUBMISSION, completion, fake_requests_response
from encoding import ReturnType, decode_result
from sandbox import FunctionsHost, simulate_script


@pytest.fixture
def fake_request(monkeypatch):
    fake = Mock(return_value=fake_requests_response(completion('{"score":95,"reasoning":"mentions DeFi"}')))
    monkeypatch.setattr(sandbox.requests, "request", fake)
    return fake


class TestSimulateJudgeSource:
    def test_defi_scenario(self, judge_source_text, secrets, fake_request):
        res = simulate_script(judge_source_text, [DEFI_CRITERIA, DEFI_SUBMISSION], [], secrets)
        assert not res.error
        assert decode_result(res.response_bytes_hexstring, ReturnType.uint256) == 95
        assert "AI Verdict: Score 95. Reasoning: mentions DeFi" in res.captured_terminal_output
        assert res.queries == 1

        _, kwargs = fake_request.call_args
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert fake_request.call_args[0][0] == "POST"

    def test_missing_argument_reported_without_network(self, judge_source_text, secrets, fake_request):
        res = simulate_script(judge_source_text, [DEFI_CRITERIA, ""], [], secrets)
        assert res.error
        assert res.error_string.startswith("MissingArgument:")
        assert res.response_bytes_hexstring is None
        fake_request.assert_not_called()

    def test_provider_http_error(self, judge_source_text, secrets, monkeypatch):
        body = {"error": {"message": "Incorrect API key provided", "type": "invalid_request_error"}}
        monkeypatch.setattr(sandbox.requests, "request", Mock(return_value=fake_requests_response(body, 401)))
        res = simulate_script(judge_source_text, [DEFI_CRITERIA, DEFI_SUBMISSION], [], secrets)
        assert res.error_string.startswith("ProviderError:")
        assert "Incorrect API key provided" in res.error_string

    def test_malformed_verdict(self, judge_source_text, secrets, monkeypatch):
        resp = fake_requests_response(completion("Sorry, I cannot help."))
        monkeypatch.setattr(sandbox.requests, "request", Mock(return_value=resp))
        res = simulate_script(judge_source_text, [DEFI_CRITERIA, DEFI_SUBMISSION], [], secrets)
        assert res.error_string.startswith("MalformedVerdict:")
        assert "Sorry, I cannot help." in res.error_string
        assert res.captured_terminal_output == ""

    def test_fresh_state_per_run(self, judge_source_text, secrets, fake_request):
        first = simulate_script(judge_source_text, [DEFI_CRITERIA, DEFI_SUBMISSION], [], secrets)
        second = simulate_script(judge_source_text, [DEFI_CRITERIA, DEFI_SUBMISSION], [], secrets)
        assert first.response_bytes_hexstring == second.response_bytes_hexstring
        assert second.queries == 1


class TestSandboxContract:
    def test_syntax_error(self):
        res = simulate_script("def main(:\n", [], [], {})
        assert res.error_string.startswith("SyntaxError:")

    def test_missing_entrypoint(self):
        res = simulate_script("x = 1\n", [], [], {})
        assert "does not define callable 'main'" in res.error_string

    def test_args_and_secrets_are_explicit(self):
        src = (
            "def main(args, bytes_args, secrets, functions):\n"
            "    print(args, bytes_args, sorted(secrets))\n"
            "    return functions.encode_uint256(len(args))\n"
        )
        res = simulate_script(src, ["a", "b"], [], {"k": "v"})
        assert decode_result(res.response_bytes_hexstring, ReturnType.uint256) == 2
        assert res.captured_terminal_output == "['a', 'b'] [] ['k']\n"

    def test_non_bytes_return(self):
        res = simulate_script("def main(a, b, s, f):\n    return 95\n", [], [], {})
        assert "must return bytes" in res.error_string

    def test_on_chain_response_limit(self):
        src = "def main(a, b, s, f):\n    return f.encode_string('x' * 300)\n"
        res = simulate_script(src, [], [], {})
        assert "exceeds 256 bytes" in res.error_string

    def test_timed_out_worker_output_stays_out_of_next_run(self):
        slow = "import time\n\ndef main(a, b, s, f):\n    time.sleep(0.2)\n    print('LEAK-FROM-RUN-1')\n    return b''\n"
        first = simulate_script(slow, [], [], {}, limits=SandboxLimits(max_execution_s=0.05))
        assert "maximum execution time" in first.error_string

        src = "import time\n\ndef main(a, b, s, f):\n    time.sleep(0.4)\n    return f.encode_uint256(1)\n"
        second = simulate_script(src, [], [], {})
        assert not second.error
        assert second.captured_terminal_output == ""
        assert decode_result(second.response_bytes_hexstring, ReturnType.uint256) == 1

    def test_execution_time_limit(self):
        src = "import time\n\ndef main(a, b, s, f):\n    time.sleep(1)\n    return b''\n"
        res = simulate_script(src, [], [], {}, limits=SandboxLimits(max_execution_s=0.05))
        assert res.error_string.startswith("SandboxError:")
        assert "maximum execution time" in res.error_string


class TestFunctionsHost:
    def test_query_limit(self, fake_request):
        host = FunctionsHost(SandboxLimits(max_queries=1))
        assert not host.make_http_request("https://example.com").error
        second = host.make_http_request("https://example.com")
        assert second.error and second.code == "ERR_QUERY_LIMIT"
        assert fake_request.call_count == 1

    def test_url_length_limit(self, fake_request):
        host = FunctionsHost(SandboxLimits(max_query_url_length=10))
        res = host.make_http_request("https://example.com/long")
        assert res.code == "ERR_URL_TOO_LONG"
        fake_request.assert_not_called()

    def test_request_size_limit(self, fake_request):
        host = FunctionsHost(SandboxLimits(max_query_request_bytes=8))
        res = host.make_http_request("https://example.com", method="POST", data={"k": "long value"})
        assert res.code == "ERR_REQUEST_TOO_LARGE"
        fake_request.assert_not_called()

    def test_response_size_limit(self, fake_request):
        host = FunctionsHost(SandboxLimits(max_query_response_bytes=4))
        res = host.make_http_request("https://example.com")
        assert res.code == "ERR_RESPONSE_TOO_LARGE"

    def test_timeout_is_capped(self, fake_request):
        host = FunctionsHost(SandboxLimits(max_query_s=2.0))
        host.make_http_request("https://example.com", timeout_s=60)
        assert fake_request.call_args[1]["timeout"] == 2.0

    def test_timeout_becomes_error_response(self, monkeypatch):
        monkeypatch.setattr(sandbox.requests, "request", Mock(side_effect=requests.Timeout("slow")))
        res = FunctionsHost().make_http_request("https://example.com")
        assert res.error and res.code == "ERR_TIMEOUT"

    def test_network_error_becomes_error_response(self, monkeypatch):
        monkeypatch.setattr(sandbox.requests, "request", Mock(side_effect=requests.ConnectionError("down")))
        res = FunctionsHost().make_http_request("https://example.com")
        assert res.error and res.code == "ERR_NETWORK"

    def test_non_json_body_kept_as_text(self, monkeypatch):
        monkeypatch.setattr(sandbox.requests, "request", Mock(return_value=fake_requests_response("plain")))
        res = FunctionsHost().make_http_request("https://example.com")
        assert not res.error
        assert res.data == "plain"
