"""今日日程测试：构建、乐观切换与回滚、过期刷新丢弃。"""
import asyncio
from datetime import date, datetime, timezone

import pytest

from conftest import FakePetRepo, FakeReminderRepo, FakeVisitRepo, at
from pet_care.agenda.builder import LOAD_ERROR_MESSAGE, TOGGLE_ERROR_MESSAGE, DailyAgenda, build_agenda
from pet_care.agenda.models import AgendaItemKind
from pet_care.errors import RepositoryError, ValidationError
from pet_care.health.models import Frequency, Reminder, ReminderType, VetVisit
from pet_care.pets.models import Pet

TODAY = date(2024, 1, 5)


def _reminder(rid="r1", frequency=Frequency.DAILY, scheduled_at="2024-01-01 09:00", **kwargs) -> Reminder:
    return Reminder(
        id=rid,
        user_id="u1",
        title=kwargs.pop("title", "Pill"),
        type=kwargs.pop("type", ReminderType.MEDICATION),
        scheduled_at=at(scheduled_at),
        frequency=frequency,
        **kwargs,
    )


def _visit(vid="v1", when="2024-01-05 09:00", **kwargs) -> VetVisit:
    return VetVisit(id=vid, user_id="u1", date=at(when), **kwargs)


def _agenda(reminders=(), visits=(), pets=(), user_id="u1"):
    repo = FakeReminderRepo(reminders)
    agenda = DailyAgenda(repo, FakeVisitRepo(visits), FakePetRepo(pets), user_id, clock=lambda: at("2024-01-05 12:00"))
    return agenda, repo


def test_reminder_before_visit_at_same_time() -> None:
    items = build_agenda([_reminder()], [_visit(reason="Check-up")], [], TODAY)
    assert [i.kind for i in items] == [AgendaItemKind.REMINDER, AgendaItemKind.VISIT]
    assert items[0].completed is False
    assert items[1].completed is None
    assert items[1].title == "Check-up"
    assert items[1].icon == "medical-bag"


def test_items_sorted_by_time() -> None:
    items = build_agenda(
        [_reminder("late", scheduled_at="2024-01-01 18:00"), _reminder("early", scheduled_at="2024-01-01 07:00")],
        [_visit(when="2024-01-05 12:00")],
        [],
        TODAY,
    )
    assert [i.id for i in items] == ["early", "v1", "late"]
    assert [i.time_label for i in items] == ["07:00", "12:00", "18:00"]


def test_visit_outside_day_is_excluded() -> None:
    visits = [_visit("next", when="2024-01-06 00:00"), _visit("prev", when="2024-01-04 23:59"), _visit("first", when="2024-01-05 00:00")]
    assert [i.id for i in build_agenda([], visits, [], TODAY)] == ["first"]


def test_visit_without_reason_gets_default_title() -> None:
    assert build_agenda([], [_visit()], [], TODAY)[0].title == "Vet visit"


def test_sub_daily_reminder_expands_to_instances() -> None:
    r = _reminder(frequency=Frequency.EVERY_8_HOURS, scheduled_at="2024-01-01 08:00", completed_dates=["2024-01-05-08:00"])
    items = build_agenda([r], [], [], TODAY)
    assert [i.id for i in items] == ["r1-00:00", "r1-08:00", "r1-16:00"]
    assert [i.completed for i in items] == [False, True, False]
    assert all(i.reminder.id == "r1" for i in items)


def test_pet_name_as_subtitle() -> None:
    pets = [Pet(id="p1", name="Rex")]
    items = build_agenda([_reminder(pet_id="p1"), _reminder("r2", pet_id="gone")], [], pets, TODAY)
    assert [i.subtitle for i in items] == ["Rex", None]
    assert items[0].icon == "pill"


def test_build_is_idempotent() -> None:
    args = ([_reminder()], [_visit()], [], TODAY)
    assert build_agenda(*args) == build_agenda(*args)


@pytest.mark.asyncio
async def test_refresh_loads_items() -> None:
    agenda, _ = _agenda([_reminder(), _reminder("old", frequency=Frequency.ONCE)], [_visit()])
    items = await agenda.refresh()
    assert [i.id for i in items] == ["r1", "v1"]
    assert agenda.day == TODAY
    assert agenda.loading is False
    assert agenda.last_error is None


@pytest.mark.asyncio
async def test_missing_user_is_validation_error() -> None:
    agenda, _ = _agenda(user_id=None)
    with pytest.raises(ValidationError):
        await agenda.refresh()
    with pytest.raises(ValidationError):
        await agenda.toggle("r1")


@pytest.mark.asyncio
async def test_refresh_failure_keeps_items() -> None:
    agenda, repo = _agenda([_reminder()])
    await agenda.refresh()
    repo.fail_list = True
    items = await agenda.refresh()
    assert [i.id for i in items] == ["r1"]
    assert agenda.last_error == LOAD_ERROR_MESSAGE
    assert agenda.loading is False


@pytest.mark.asyncio
async def test_stale_refresh_is_discarded() -> None:
    agenda, repo = _agenda([_reminder("old")])
    gate = asyncio.Event()
    repo.list_gates.append(gate)
    first = asyncio.create_task(agenda.refresh(TODAY))
    await repo.entered.wait()

    repo.reminders = [_reminder("new")]
    await agenda.refresh(TODAY)
    gate.set()
    await first
    assert [i.id for i in agenda.items] == ["new"]


@pytest.mark.asyncio
async def test_toggle_recurring_sends_completed_dates() -> None:
    agenda, repo = _agenda([_reminder()])
    await agenda.refresh()
    item = await agenda.toggle("r1")
    assert item.completed is True
    assert repo.patches == [("r1", {"completed_dates": ["2024-01-05"]})]

    await agenda.toggle("r1")
    assert agenda.get("r1").completed is False
    assert repo.patches[-1] == ("r1", {"completed_dates": []})


@pytest.mark.asyncio
async def test_toggle_once_sends_completed_flag() -> None:
    agenda, repo = _agenda([_reminder(frequency=None, scheduled_at="2024-01-05 10:00")])
    await agenda.refresh()
    await agenda.toggle("r1")
    assert repo.patches == [("r1", {"completed": True})]


@pytest.mark.asyncio
async def test_toggle_failure_rolls_back() -> None:
    agenda, repo = _agenda([_reminder()])
    await agenda.refresh()
    repo.patch_plan.append(RepositoryError("offline"))
    with pytest.raises(RepositoryError):
        await agenda.toggle("r1")
    assert agenda.get("r1").completed is False
    assert agenda.get("r1").reminder.completed_dates == []
    assert agenda.last_error == TOGGLE_ERROR_MESSAGE


@pytest.mark.asyncio
async def test_unknown_or_visit_item_cannot_toggle() -> None:
    agenda, repo = _agenda([], [_visit()])
    await agenda.refresh()
    with pytest.raises(ValidationError):
        await agenda.toggle("nope")
    with pytest.raises(ValidationError):
        await agenda.toggle("v1")
    assert repo.patches == []


@pytest.mark.asyncio
async def test_sibling_toggle_survives_failed_rollback() -> None:
    r = _reminder(frequency=Frequency.EVERY_12_HOURS, scheduled_at="2024-01-01 07:30")
    agenda, repo = _agenda([r])
    await agenda.refresh()
    assert [i.id for i in agenda.items] == ["r1-07:30", "r1-19:30"]

    morning_gate, evening_gate = asyncio.Event(), asyncio.Event()
    repo.patch_plan = [(morning_gate, RepositoryError("offline")), (evening_gate, None)]

    repo.entered.clear()
    morning = asyncio.create_task(agenda.toggle("r1-07:30"))
    await repo.entered.wait()
    repo.entered.clear()
    evening = asyncio.create_task(agenda.toggle("r1-19:30"))
    await repo.entered.wait()
    assert repo.patches[1] == ("r1", {"completed_dates": ["2024-01-05-07:30", "2024-01-05-19:30"]})

    morning_gate.set()
    with pytest.raises(RepositoryError):
        await morning
    evening_gate.set()
    await evening

    assert agenda.get("r1-07:30").completed is False
    assert agenda.get("r1-19:30").completed is True

    # 再次切换 19:30 时基于回滚后的状态计算
    await agenda.toggle("r1-19:30")
    assert repo.patches[-1] == ("r1", {"completed_dates": []})


@pytest.mark.asyncio
async def test_refresh_uses_clock_when_no_day_given() -> None:
    r = _reminder(frequency=None, scheduled_at="2024-01-05 10:00")
    agenda, _ = _agenda([r])
    assert [i.id for i in await agenda.refresh()] == ["r1"]
    assert await agenda.refresh(datetime(2024, 1, 6, 8, 0)) == []


@pytest.mark.asyncio
async def test_failed_toggle_leaves_other_day_untouched() -> None:
    agenda, repo = _agenda([_reminder(completed_dates=["2024-01-06"])])
    await agenda.refresh(TODAY)
    gate = asyncio.Event()
    repo.patch_plan.append((gate, RepositoryError("offline")))

    repo.entered.clear()
    pending = asyncio.create_task(agenda.toggle("r1"))
    await repo.entered.wait()
    await agenda.refresh(date(2024, 1, 6))
    gate.set()
    with pytest.raises(RepositoryError):
        await pending

    item = agenda.get("r1")
    assert item.day == date(2024, 1, 6)
    assert item.completed is True
    assert item.reminder.completed_dates == ["2024-01-06"]


def test_offset_datetimes_become_local_wall_clock() -> None:
    r = Reminder(id="r1", title="Pill", scheduled_at="2024-01-01T08:00:00Z", frequency=Frequency.EVERY_8_HOURS)
    visit = VetVisit(id="v1", date="2024-01-05T10:00:00+01:00")
    local_visit = datetime(2024, 1, 5, 9, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert r.scheduled_at.tzinfo is None
    assert visit.date == local_visit

    items = build_agenda([r], [visit], [], local_visit.date())
    assert "v1" in [i.id for i in items]
    assert len([i for i in items if i.kind == AgendaItemKind.REMINDER]) == 3
