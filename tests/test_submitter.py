import pytest

from copytrade.errors import SubmissionError
from copytrade.services.submitter import AptosTransactionSubmitter


class FakeAccount:
    def address(self):
        return "0xbot"


class FakeRestClient:
    def __init__(self, submit_exc=None, wait_exc=None):
        self.submit_exc = submit_exc
        self.wait_exc = wait_exc
        self.submitted = []
        self.waited = []
        self.closed = False

    async def submit_transaction(self, sender, payload):
        if self.submit_exc:
            raise self.submit_exc
        self.submitted.append((sender, payload))
        return "0xhash"

    async def wait_for_transaction(self, tx_hash):
        self.waited.append(tx_hash)
        if self.wait_exc:
            raise self.wait_exc

    async def close(self):
        self.closed = True


PAYLOAD = {"type": "entry_function_payload", "function": "0xmerkle::managed_trading::place_order_v3",
           "type_arguments": [], "arguments": []}


def make(client):
    return AptosTransactionSubmitter("https://node", "0xkey", rest_client=client, account=FakeAccount())


@pytest.mark.asyncio
async def test_submit_waits_for_finality():
    client = FakeRestClient()
    sub = make(client)

    assert await sub.submit(PAYLOAD) == "0xhash"
    assert client.submitted[0][1] is PAYLOAD
    assert client.waited == ["0xhash"]
    assert sub.address == "0xbot"

    await sub.close()
    assert client.closed


@pytest.mark.asyncio
async def test_submit_rejection_raises_submission_error():
    sub = make(FakeRestClient(submit_exc=RuntimeError("SEQUENCE_NUMBER_TOO_OLD")))
    with pytest.raises(SubmissionError, match="place_order_v3"):
        await sub.submit(PAYLOAD)


@pytest.mark.asyncio
async def test_failed_execution_raises_submission_error():
    client = FakeRestClient(wait_exc=RuntimeError("Move abort"))
    with pytest.raises(SubmissionError, match="finality"):
        await make(client).submit(PAYLOAD)
