import datetime

import pytest
from django.utils import timezone

from taskprotocoller.protocols.tests.factories import ProtocolFactory
from taskprotocoller.runs.forms import ParticipantForm
from taskprotocoller.runs.forms import age_on
from taskprotocoller.runs.forms import check_birth_date

TODAY = datetime.date(2026, 6, 15)


class TestAgeOn:
    def test_birthday_passed(self):
        assert age_on(datetime.date(1990, 6, 15), TODAY) == 36

    def test_birthday_not_yet(self):
        assert age_on(datetime.date(1990, 6, 16), TODAY) == 35


class TestCheckBirthDate:
    def test_adult_is_accepted(self):
        assert check_birth_date(datetime.date(1980, 1, 1), TODAY) is None

    def test_eighteenth_birthday_is_accepted(self):
        assert check_birth_date(datetime.date(2008, 6, 15), TODAY) is None

    def test_future_date(self):
        assert "future" in check_birth_date(datetime.date(2027, 1, 1), TODAY)

    def test_under_eighteen(self):
        assert "18" in check_birth_date(datetime.date(2008, 6, 16), TODAY)

    def test_over_hundred_and_twenty(self):
        assert "120" in check_birth_date(datetime.date(1900, 1, 1), TODAY)


@pytest.mark.django_db
class TestParticipantForm:
    def _form(self, **data):
        data.setdefault("protocol", ProtocolFactory().pk)
        return ParticipantForm(data=data)

    def test_external_id_is_enough(self):
        form = self._form(external_id="  P-0001 ")
        assert form.is_valid(), form.errors
        assert form.cleaned_data["external_id"] == "P-0001"

    def test_full_identity_is_enough(self):
        form = self._form(full_name="Jana Novak", birth_date="1975-04-02", sex="female")
        assert form.is_valid(), form.errors

    def test_partial_identity_is_rejected(self):
        form = self._form(full_name="Jana Novak", sex="female")
        assert not form.is_valid()
        assert form.non_field_errors()

    def test_blank_name_does_not_count(self):
        form = self._form(full_name="   ", birth_date="1975-04-02", sex="female")
        assert not form.is_valid()
        assert form.non_field_errors()

    def test_too_young_reports_birth_date_only(self):
        birth_date = timezone.localdate() - datetime.timedelta(days=365 * 10)
        form = self._form(full_name="Jana Novak", birth_date=birth_date.isoformat(), sex="female")
        assert not form.is_valid()
        assert "birth_date" in form.errors
        assert not form.non_field_errors()

    def test_invalid_email(self):
        form = self._form(external_id="P-1", contact_email="not-an-email")
        assert not form.is_valid()
        assert "contact_email" in form.errors
