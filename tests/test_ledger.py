from services.bridge.fanout import DeliveryOutcome
from services.bridge.ledger import MessageLedger, MessageRecord
from services.bridge.registry import DeliveryTarget


def target(n):
    return DeliveryTarget(community_id=str(100 + n), channel_id=str(200 + n), webhook_url=f"https://w/{n}")


def test_record_outcomes_keeps_only_deliveries(ledger):
    outcomes = [
        DeliveryOutcome(target=target(1), message_id=11),
        DeliveryOutcome(target=target(2), error="500 Server Error"),
        DeliveryOutcome(target=target(3), message_id=33),
    ]

    assert ledger.record_outcomes(7, outcomes) == 2
    assert ledger.list_for(7) == [
        MessageRecord(post_id=7, community_id="101", channel_id="201", message_id="11"),
        MessageRecord(post_id=7, community_id="103", channel_id="203", message_id="33"),
    ]


def test_duplicate_record_is_ignored(ledger):
    ledger.record(1, 101, 201, 11)
    ledger.record(1, 101, 201, 99)

    assert [r.message_id for r in ledger.list_for(1)] == ["11"]


def test_records_are_scoped_per_post(db_path):
    ledger = MessageLedger(db_path)
    ledger.record(1, 101, 201, 11)
    ledger.record(2, 101, 201, 12)

    reopened = MessageLedger(db_path)

    assert [r.message_id for r in reopened.list_for(2)] == ["12"]
    assert reopened.list_for(3) == []
