"""
Tests for the sync wrappers.
"""
import pytest

from record_gateway.sync import (
    delete_records_sync,
    get_records_sync,
    insert_records_sync,
    update_records_sync,
    upsert_records_sync,
)

ACME = "001000000000000001"


class TestSyncWrappers:
    """Test blocking wrappers around the async client."""

    def test_round_trip(self, client, memory_backend):
        inserted = insert_records_sync(client, record_inputs=[{"apiName": "Contact", "fields": {"LastName": "Doe"}}])
        contact_id = inserted[0].affected_references[0]

        updated = update_records_sync(client, {"records": [{"Id": contact_id, "FirstName": "Jane"}]})
        upserted = upsert_records_sync(client, records=[{"Id": ACME, "Employees": 121}], api_name="Account")
        rows = get_records_sync(client, api_name="Contact", fields=["FirstName", "LastName"])
        deleted = delete_records_sync(client, record_ids=[contact_id])

        assert updated[0].success and upserted[0].success and deleted[0].success
        assert rows == [{"FirstName": "Jane", "LastName": "Doe"}]
        assert memory_backend.count("Contact") == 0

    @pytest.mark.asyncio
    async def test_refuses_running_loop(self, client):
        with pytest.raises(RuntimeError, match="await client.get_records"):
            get_records_sync(client, api_name="Account")
