"""
Сквозной тест: приложение, собранное bootstrap_app, с хранением в JSON-файлах.
"""

from decimal import Decimal

from accommodation.domain import GuestInfo
from bootstrap import bootstrap_app
from shared_kernel import PaymentMethod, ResortSettings, RoomStatus, StayStatus

from conftest import RecordingLogger


def test_full_day_at_the_front_desk(tmp_path):
    settings = ResortSettings(data_dir=tmp_path, read_retry_backoff=0)
    app = bootstrap_app(settings, logger=RecordingLogger())

    # 1. Оператор видит весь номерной фонд
    rooms = app["rooms"].list_rooms()
    assert len(rooms) == 33
    assert rooms[0].name == "Room 1"

    # 2. Заселение в два номера
    app["booking"].toggle_room(rooms[0].id)
    app["booking"].toggle_room(rooms[11].id)
    assert app["booking"].compute_total(2).amount == Decimal(14600)
    stay = app["booking"].confirm_check_in(
        GuestInfo(name="Nisha", address="Goa", id_proof="A-77"), days=2
    )

    # 3. Выезд с ручным итогом и оплатой картой
    result = app["checkout"].checkout(
        stay.id, confirmed=True, total_override="14000", payment_method=PaymentMethod.CARD
    )
    assert result.warnings == []
    assert sorted(app["housekeeping"].pending()) == ["Room 1", "Room 12"]

    # 4. Уборка одного номера
    app["rooms"].mark_cleaned(rooms[0].id)

    # Состояние переживает перезапуск
    restarted = bootstrap_app(settings, logger=RecordingLogger())
    statuses = {room.name: room.status for room in restarted["rooms"].list_rooms()}
    assert statuses["Room 1"] == RoomStatus.FREE
    assert statuses["Room 12"] == RoomStatus.HOUSEKEEPING
    assert restarted["housekeeping"].pending() == ["Room 12"]
    restarted["rooms"].mark_cleaned(rooms[11].id)
    assert restarted["housekeeping"].pending() == []
    history = restarted["stays"].list_history()
    assert [s.id for s in history] == [stay.id]
    assert history[0].status == StayStatus.CHECKED_OUT
    records = restarted["accounts"].list_records()
    assert len(records) == 1
    assert records[0].total_amount.amount == Decimal(14000)
    assert records[0].payment_method == PaymentMethod.CARD
    assert (tmp_path / "accounts.json").exists()


def test_in_memory_app_without_data_dir():
    app = bootstrap_app(ResortSettings(room_count=9), logger=RecordingLogger())

    assert len(app["rooms"].list_rooms()) == 9
    assert app["stays"].list_active() == []
