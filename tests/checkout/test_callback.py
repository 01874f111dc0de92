import pytest

from splitpay.features.checkout.services.callback import CallbackContinuationHandler
from splitpay.features.checkout.services.orchestrator import SplitCheckoutOrchestrator
from splitpay.platform.errors import ConfigurationError, FlowNotFoundError, ResolutionError, ValidationError
from splitpay.platform.pending_store import InMemoryPendingStore

CUSTOMER = "https://wallet.example/alice"
MERCHANT = "https://wallet.example/shop"
PLATFORM = "https://wallet.example/platform"


async def _start_checkout(fake_client, store) -> str:
    orchestrator = SplitCheckoutOrchestrator(
        client_factory=lambda: fake_client,
        store=store,
        platform_wallet_address=PLATFORM,
        finish_redirect_base="https://splitpay.example",
    )
    started = await orchestrator.checkout(
        customer_address=CUSTOMER,
        merchant_address=MERCHANT,
        amount_minor=10000,
        merchant_pct=99,
        platform_pct=1,
    )
    fake_client.calls.clear()
    return started.nonce


@pytest.mark.asyncio
async def test_callback_creates_one_outgoing_payment_per_quote(fake_client) -> None:
    store = InMemoryPendingStore()
    nonce = await _start_checkout(fake_client, store)
    handler = CallbackContinuationHandler(client_factory=lambda: fake_client, store=store)

    result = await handler.handle(nonce=nonce, interact_ref="ref-1")

    assert result.status == "ok"
    assert result.payer == CUSTOMER
    assert len(result.outgoing_payments) == 2
    assert result.failures == []

    continued = fake_client.calls_named("continue_grant")
    assert len(continued) == 1
    assert continued[0]["interact_ref"] == "ref-1"

    outgoing = fake_client.calls_named("create_outgoing_payment")
    assert {c["token"] for c in outgoing} == {"outgoing-ref-1"}
    assert all(c["wallet_address"] == CUSTOMER for c in outgoing)
    assert all(c["resource_server"] == f"{CUSTOMER}/rs" for c in outgoing)


@pytest.mark.asyncio
async def test_replayed_callback_is_not_found(fake_client) -> None:
    store = InMemoryPendingStore()
    nonce = await _start_checkout(fake_client, store)
    handler = CallbackContinuationHandler(client_factory=lambda: fake_client, store=store)

    await handler.handle(nonce=nonce, interact_ref="ref-1")
    with pytest.raises(FlowNotFoundError):
        await handler.handle(nonce=nonce, interact_ref="ref-1")

    assert len(fake_client.calls_named("continue_grant")) == 1
    assert len(fake_client.calls_named("create_outgoing_payment")) == 2


@pytest.mark.asyncio
async def test_unknown_nonce_makes_no_network_calls(fake_client) -> None:
    handler = CallbackContinuationHandler(client_factory=lambda: fake_client, store=InMemoryPendingStore())

    with pytest.raises(FlowNotFoundError):
        await handler.handle(nonce="deadbeef", interact_ref="ref")
    assert fake_client.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("nonce,interact_ref", [(None, "ref"), ("abc", None), ("", "")])
async def test_callback_requires_both_params(fake_client, nonce, interact_ref) -> None:
    handler = CallbackContinuationHandler(client_factory=lambda: fake_client, store=InMemoryPendingStore())

    with pytest.raises(ValidationError):
        await handler.handle(nonce=nonce, interact_ref=interact_ref)


@pytest.mark.asyncio
async def test_partial_failure_keeps_successful_payments(fake_client) -> None:
    store = InMemoryPendingStore()
    nonce = await _start_checkout(fake_client, store)
    context = await store.take(nonce)
    await store.put(nonce, context)

    platform_quote = next(entry.quote.id for entry in context.receivers if entry.receiver.id == PLATFORM)
    fake_client.fail_quote_ids.add(platform_quote)

    handler = CallbackContinuationHandler(client_factory=lambda: fake_client, store=store)
    result = await handler.handle(nonce=nonce, interact_ref="ref-2")

    assert result.status == "partial"
    assert len(result.outgoing_payments) == 1
    assert result.failures[0].quote_id == platform_quote
    assert result.failures[0].receiver == PLATFORM


@pytest.mark.asyncio
async def test_all_payments_failing_raises(fake_client) -> None:
    store = InMemoryPendingStore()
    nonce = await _start_checkout(fake_client, store)
    fake_client.fail.add("create_outgoing_payment")

    handler = CallbackContinuationHandler(client_factory=lambda: fake_client, store=store)
    with pytest.raises(ResolutionError):
        await handler.handle(nonce=nonce, interact_ref="ref-3")

    # Consumed before payment, so a replay finds nothing.
    with pytest.raises(FlowNotFoundError):
        await handler.handle(nonce=nonce, interact_ref="ref-3")


@pytest.mark.asyncio
async def test_unconfigured_client_leaves_flow_resumable(fake_client) -> None:
    store = InMemoryPendingStore()
    nonce = await _start_checkout(fake_client, store)

    def unconfigured():
        raise ConfigurationError("OP_CLIENT_KEY_ID/OP_PRIVATE_KEY_PEM/OP_PLATFORM_WALLET_ADDRESS not configured")

    with pytest.raises(ConfigurationError):
        await CallbackContinuationHandler(client_factory=unconfigured, store=store).handle(nonce=nonce, interact_ref="ref-1")
    assert len(store) == 1

    handler = CallbackContinuationHandler(client_factory=lambda: fake_client, store=store)
    result = await handler.handle(nonce=nonce, interact_ref="ref-1")
    assert result.status == "ok"
