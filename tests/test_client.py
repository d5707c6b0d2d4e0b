"""
Tests for the gateway client against the in-memory and stub backends.
"""
import asyncio

import pytest

from record_gateway.backends import InMemoryBackend, Operation
from record_gateway.backends.memory import ROLLED_BACK
from record_gateway.client import GatewayClient
from record_gateway.config import BackendConfig, LoggingConfig, Settings
from record_gateway.errors import (
    BackendRejectedError,
    BackendTimeoutError,
    BackendUnavailableError,
    InvalidArgumentError,
    InvalidBackendResponseError,
    MalformedQueryError,
)
from record_gateway.hooks import HookManager
from record_gateway.requests import build_delete, build_query
from record_gateway.types import MutationOutcome

ACME = "001000000000000001"
GLOBEX = "001000000000000002"
INITECH = "001000000000000003"


def make_outcome(success=True, value=None, reason=None):
    """Create a backend outcome dict in wire shape."""
    return {"success": success, "value": value or [], "reason": reason}


class FailingHook:
    def __init__(self, event):
        self.event = event

    async def emit(self, event, payload, context):
        if event == self.event:
            raise RuntimeError(f"hook broke on {event}")


class TestDeleteRecords:
    """Test bulk delete."""

    @pytest.mark.asyncio
    async def test_outcomes_in_request_order(self, client, memory_backend):
        outcomes = await client.delete_records({"recordIds": [GLOBEX, ACME]})

        assert [o.affected_references for o in outcomes] == [[GLOBEX], [ACME]]
        assert all(isinstance(o, MutationOutcome) and o.success for o in outcomes)
        assert memory_backend.count("Account") == 1

    @pytest.mark.asyncio
    async def test_all_or_none_rolls_back(self, client, memory_backend):
        outcomes = await client.delete_records(record_ids=[ACME, "001999999999999999"])

        assert [o.success for o in outcomes] == [False, False]
        assert outcomes[0].reason.startswith(ROLLED_BACK)
        assert outcomes[1].reason.startswith("ENTITY_IS_DELETED")
        assert memory_backend.count("Account") == 3

    @pytest.mark.asyncio
    async def test_partial_success(self, client, memory_backend):
        outcomes = await client.delete_records(record_ids=[ACME, "001999999999999999"], all_or_none=False)

        assert [o.success for o in outcomes] == [True, False]
        assert memory_backend.get(ACME) is None

    @pytest.mark.asyncio
    async def test_empty_batch(self, client):
        assert await client.delete_records(record_ids=[]) == []

    @pytest.mark.asyncio
    async def test_invalid_options_never_reach_backend(self, stub_client, stub_backend):
        with pytest.raises(InvalidArgumentError):
            await stub_client.delete_records({"recordIds": "not-a-list"})

        assert stub_backend.calls == []

    @pytest.mark.asyncio
    async def test_prebuilt_request(self, stub_client, stub_backend):
        await stub_client.delete_records(build_delete(["a1"], all_or_none=False))

        assert stub_backend.calls == [(Operation.DELETE, {"recordIds": ["a1"], "allOrNone": False})]


class TestUpdateRecords:
    """Test bulk update."""

    @pytest.mark.asyncio
    async def test_updates_across_batch(self, client, memory_backend):
        outcomes = await client.update_records(
            records=[{"Id": ACME, "Industry": "Retail"}, {"Id": GLOBEX, "Employees": 41}],
        )

        assert all(o.success for o in outcomes)
        assert memory_backend.get(ACME)["Industry"] == "Retail"
        assert memory_backend.get(GLOBEX)["Employees"] == 41

    @pytest.mark.asyncio
    async def test_record_without_id_fails_per_record(self, client):
        outcomes = await client.update_records(records=[{"Name": "No Id"}], all_or_none=False)

        assert outcomes[0].success is False
        assert outcomes[0].reason.startswith("MISSING_ARGUMENT")

    @pytest.mark.asyncio
    async def test_default_all_or_none_is_true(self, stub_client, stub_backend):
        await stub_client.update_records({"records": [{"Id": "a1"}]})

        assert stub_backend.calls[0][1]["allOrNone"] is True


class TestInsertRecords:
    """Test bulk insert."""

    @pytest.mark.asyncio
    async def test_insert_returns_new_references(self, client, memory_backend):
        outcomes = await client.insert_records(
            record_inputs=[
                {"apiName": "Account", "fields": {"Name": "Hooli"}},
                {"apiName": "Contact", "fields": {"LastName": "Doe"}},
            ]
        )

        assert all(o.success for o in outcomes)
        account_id, contact_id = (o.affected_references[0] for o in outcomes)
        assert memory_backend.get(account_id)["Name"] == "Hooli"
        assert memory_backend.get(contact_id)["LastName"] == "Doe"

    @pytest.mark.asyncio
    async def test_rejected_record_resolves_as_failed_outcome(self, client, memory_backend):
        """A record the backend refuses is reported, not raised."""
        outcomes = await client.insert_records(
            record_inputs=[
                {"apiName": "Account", "fields": {"Name": "Hooli"}},
                {"apiName": "Account", "fields": {"Industry": "Tech"}},
            ],
            all_or_none=False,
        )

        assert outcomes[0].success is True
        assert outcomes[1].success is False
        assert outcomes[1].reason.startswith("REQUIRED_FIELD_MISSING")
        assert memory_backend.count("Account") == 4

    @pytest.mark.asyncio
    async def test_backend_rejection_of_single_record(self, stub_client, stub_backend):
        stub_backend.responses[Operation.INSERT] = [
            make_outcome(False, None, "DUPLICATE_VALUE: duplicate value found: Name"),
        ]

        outcomes = await stub_client.insert_records(
            record_inputs=[{"apiName": "Account", "fields": {"Name": "Acme"}}],
        )

        assert outcomes == [
            MutationOutcome(
                success=False,
                affected_references=[],
                reason="DUPLICATE_VALUE: duplicate value found: Name",
            )
        ]

    @pytest.mark.asyncio
    async def test_independent_outcomes(self, client):
        outcomes = await client.insert_records(
            record_inputs=[
                {"apiName": "Account", "fields": {"Name": "One"}},
                {"apiName": "Account", "fields": {"Name": None}},
                {"apiName": "Account", "fields": {"Name": "Three"}},
            ],
            all_or_none=False,
        )

        assert [o.success for o in outcomes] == [True, False, True]


class TestUpsertRecords:
    """Test bulk upsert."""

    @pytest.mark.asyncio
    async def test_default_external_id_needs_id(self, client):
        outcomes = await client.upsert_records(
            records=[{"Id": ACME, "Name": "Acme Corp"}, {"Name": "Fresh"}],
            api_name="Account",
            all_or_none=False,
        )

        assert outcomes[0].success is True
        assert outcomes[1].success is False
        assert outcomes[1].reason.startswith("MISSING_ARGUMENT")

    @pytest.mark.asyncio
    async def test_custom_external_id(self, client, memory_backend):
        outcomes = await client.upsert_records(
            {
                "records": [{"Name": "Acme", "Industry": "Retail"}, {"Name": "Hooli"}],
                "apiName": "Account",
                "externalId": "Name",
            }
        )

        assert outcomes[0].affected_references == [ACME]
        assert memory_backend.get(ACME)["Industry"] == "Retail"
        assert outcomes[1].success is True
        assert memory_backend.count("Account") == 4

    @pytest.mark.asyncio
    async def test_params_carry_defaults(self, stub_client, stub_backend):
        await stub_client.upsert_records(records=[{"Id": "a1"}], api_name="Account")

        assert stub_backend.calls[0][1] == {
            "records": [{"Id": "a1"}],
            "apiName": "Account",
            "externalId": "Id",
            "allOrNone": True,
        }


class TestGetRecords:
    """Test queries."""

    @pytest.mark.asyncio
    async def test_query_rows(self, client):
        rows = await client.get_records(
            apiName="Account",
            fields=["Id", "Name"],
            whereClause="Industry = 'Tech'",
            orderBy="Name DESC",
        )

        assert rows == [{"Id": INITECH, "Name": "Initech"}, {"Id": ACME, "Name": "Acme"}]

    @pytest.mark.asyncio
    async def test_query_is_repeatable(self, client):
        query = build_query("Account", fields=["Name"], order_by="Name")

        first = await client.get_records(query)
        second = await client.get_records(query)

        assert first == second

    @pytest.mark.asyncio
    async def test_empty_result(self, client, metrics_hook):
        rows = await client.get_records(api_name="Contact")

        assert rows == []
        assert metrics_hook.records_succeeded == 0

    @pytest.mark.asyncio
    async def test_unknown_object_type_raises(self, client):
        with pytest.raises(MalformedQueryError) as exc_info:
            await client.get_records(api_name="Nope")

        assert exc_info.value.context.request_id is not None
        assert exc_info.value.context.operation == "getRecords"

    @pytest.mark.asyncio
    async def test_rows_must_be_mappings(self, stub_client, stub_backend):
        stub_backend.responses[Operation.GET] = ["not a row"]

        with pytest.raises(InvalidBackendResponseError):
            await stub_client.get_records(api_name="Account")


class TestCallFailures:
    """Test errors raised when a call cannot execute."""

    @pytest.mark.asyncio
    async def test_outcome_count_mismatch(self, stub_client, stub_backend):
        stub_backend.responses[Operation.DELETE] = [make_outcome()]

        with pytest.raises(InvalidBackendResponseError) as exc_info:
            await stub_client.delete_records(record_ids=["a1", "a2"])

        assert "1 outcomes for 2 records" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_malformed_outcome(self, stub_client, stub_backend):
        stub_backend.responses[Operation.DELETE] = [{"value": ["a1"]}]

        with pytest.raises(InvalidBackendResponseError):
            await stub_client.delete_records(record_ids=["a1"])

    @pytest.mark.asyncio
    async def test_scripted_outcomes_pass_through(self, stub_client, stub_backend):
        stub_backend.responses[Operation.UPDATE] = [
            make_outcome(True, ["a1"]),
            make_outcome(False, reason="INVALID_CROSS_REFERENCE_KEY: a2"),
        ]

        outcomes = await stub_client.update_records(records=[{"Id": "a1"}, {"Id": "a2"}], all_or_none=False)

        assert outcomes == [
            MutationOutcome(success=True, affected_references=["a1"]),
            MutationOutcome(success=False, reason="INVALID_CROSS_REFERENCE_KEY: a2"),
        ]

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_wrapped(self, stub_client, stub_backend):
        stub_backend.error = RuntimeError("boom")

        with pytest.raises(BackendRejectedError) as exc_info:
            await stub_client.insert_records(record_inputs=[{"apiName": "Account"}])

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_connection_error_is_unavailable(self, stub_client, stub_backend):
        stub_backend.error = ConnectionError("refused")

        with pytest.raises(BackendUnavailableError) as exc_info:
            await stub_client.delete_records(record_ids=["a1"])

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_timeout_is_timeout_error(self, stub_client, stub_backend):
        stub_backend.error = asyncio.TimeoutError()

        with pytest.raises(BackendTimeoutError):
            await stub_client.delete_records(record_ids=["a1"])

    @pytest.mark.asyncio
    async def test_gateway_errors_keep_their_type(self, stub_client, stub_backend):
        stub_backend.error = MalformedQueryError("bad where")

        with pytest.raises(MalformedQueryError) as exc_info:
            await stub_client.get_records(api_name="Account", where_clause="Name ==")

        assert exc_info.value.context.backend == "stub"
        assert exc_info.value.context.request_id is not None


class TestHooksAndLifecycle:
    """Test hook emission and client lifecycle."""

    @pytest.mark.asyncio
    async def test_hooks_see_every_call(self, client, metrics_hook):
        await client.delete_records(record_ids=[ACME, "001999999999999999"], all_or_none=False)
        await client.get_records(api_name="Account")
        with pytest.raises(MalformedQueryError):
            await client.get_records(api_name="Nope")

        snapshot = metrics_hook.snapshot()
        assert snapshot["counters"] == {"request.start": 3, "request.end": 2, "request.error": 1}
        assert snapshot["operations"] == {"deleteRecords": 1, "getRecords": 2}
        assert snapshot["records_succeeded"] == 1
        assert snapshot["records_failed"] == 1
        assert snapshot["errors"][0]["payload"]["error_type"] == "MalformedQueryError"

    @pytest.mark.asyncio
    async def test_context_manager_closes_backend(self, stub_backend, quiet_logger):
        async with GatewayClient(stub_backend, logger=quiet_logger) as gateway:
            await gateway.delete_records(record_ids=[])

        assert stub_backend.closed is True

    def test_default_backend(self, quiet_logger):
        gateway = GatewayClient(logger=quiet_logger)

        assert isinstance(gateway.backend, InMemoryBackend)
        assert gateway.backend_name == "memory"
        assert isinstance(gateway.hooks, HookManager)

    def test_from_settings(self, quiet_logger):
        settings = Settings(
            backend=BackendConfig(kind="memory", required_fields={"Account": ["Name"]}),
            logging=LoggingConfig(log_requests=False),
        )

        gateway = GatewayClient.from_settings(settings, logger=quiet_logger)

        assert isinstance(gateway.backend, InMemoryBackend)
        assert gateway.backend.required_fields == {"Account": ("Name",)}
        assert gateway.log_requests is False

    def test_from_settings_keyword_overrides(self, quiet_logger):
        settings = Settings(logging=LoggingConfig(log_requests=False, log_responses=False))

        gateway = GatewayClient.from_settings(settings, logger=quiet_logger, log_requests=True)

        assert gateway.log_requests is True
        assert gateway.log_responses is False

    @pytest.mark.asyncio
    async def test_failing_hook_does_not_fail_applied_batch(self, memory_backend, quiet_logger):
        """The batch is already committed when request.end fires."""
        gateway = GatewayClient(memory_backend, logger=quiet_logger, hooks=[FailingHook("request.end")])

        outcomes = await gateway.insert_records(record_inputs=[{"apiName": "Account", "fields": {"Name": "Hooli"}}])

        assert outcomes[0].success is True
        assert memory_backend.count("Account") == 4

    @pytest.mark.asyncio
    async def test_failing_hook_keeps_backend_error(self, memory_backend, quiet_logger):
        gateway = GatewayClient(memory_backend, logger=quiet_logger, hooks=[FailingHook("request.error")])

        with pytest.raises(MalformedQueryError):
            await gateway.get_records(api_name="Nope")

    @pytest.mark.asyncio
    async def test_concurrent_calls(self, client):
        results = await asyncio.gather(
            client.get_records(api_name="Account", fields=["Name"], order_by="Name"),
            client.get_records(api_name="Account", fields=["Id"], where_clause="Employees >= 100"),
        )

        assert results[0][0] == {"Name": "Acme"}
        assert results[1] == [{"Id": ACME}]
