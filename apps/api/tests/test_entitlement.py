from services.entitlement import (
    EntitlementInput,
    EntitlementState,
    evaluate_entitlement,
    evaluate_state,
)


def test_anonymous_principal_gets_one_free_export():
    before = evaluate_entitlement(EntitlementInput(is_authenticated=False, anonymous_download_count=0))
    assert before.allowed is True
    assert before.remaining == 1
    assert before.bucket == "free"

    state = EntitlementState().after_anonymous_export()
    assert state.anonymous_download_count == 1

    after = evaluate_state(state, is_authenticated=False)
    assert after.allowed is False
    assert after.remaining == 0


def test_anonymous_paid_credits_do_not_extend_free_limit():
    decision = evaluate_entitlement(
        EntitlementInput(is_authenticated=False, anonymous_download_count=3, paid_credits=5)
    )
    assert decision.allowed is False
    assert decision.remaining == 0


def test_authenticated_introductory_export_ignores_balance():
    decision = evaluate_entitlement(
        EntitlementInput(is_authenticated=True, has_used_introductory_free_export=False, paid_credits=0)
    )
    assert decision.allowed is True
    assert decision.remaining == 1
    assert decision.bucket == "post_login_free"


def test_authenticated_after_introductory_export_needs_credits():
    exhausted = evaluate_entitlement(
        EntitlementInput(is_authenticated=True, has_used_introductory_free_export=True, paid_credits=0)
    )
    assert exhausted.allowed is False
    assert exhausted.remaining == 0

    funded = evaluate_entitlement(
        EntitlementInput(is_authenticated=True, has_used_introductory_free_export=True, paid_credits=3)
    )
    assert funded.allowed is True
    assert funded.remaining == 3
    assert funded.bucket == "paid_credit"


def test_evaluation_is_repeatable_and_clamps_negative_inputs():
    request = EntitlementInput(is_authenticated=False, anonymous_download_count=-4, paid_credits=-2)
    first = evaluate_entitlement(request)
    second = evaluate_entitlement(request)
    assert first == second
    assert first.allowed is True
    assert first.remaining == 1


def test_introductory_state_transition():
    state = EntitlementState().after_introductory_export()
    assert state.has_used_introductory_free_export is True
    assert state.anonymous_download_count == 0
    assert evaluate_state(state, is_authenticated=True, paid_credits=0).allowed is False
