import datetime

from crispy_forms.helper import FormHelper
from crispy_forms.layout import Submit
from django import forms
from django.forms import ModelForm
from django.utils import timezone
from django.utils.translation import gettext
from django.utils.translation import gettext_lazy as _

from .models import Participant

MIN_AGE = 18
MAX_AGE = 120


def age_on(birth_date: datetime.date, today: datetime.date) -> int:
    years = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years


def check_birth_date(birth_date: datetime.date, today: datetime.date | None = None) -> str | None:
    """Return an error message for an unacceptable birth date, else None."""
    today = today or timezone.localdate()
    if birth_date > today:
        return gettext("Birth date cannot be in the future.")
    age = age_on(birth_date, today)
    if age < MIN_AGE:
        return gettext("Participants must be at least %(age)d years old.") % {"age": MIN_AGE}
    if age > MAX_AGE:
        return gettext("Please check the birth date; the age is over %(age)d.") % {"age": MAX_AGE}
    return None


class ParticipantForm(ModelForm):
    """
    Registers a participant for a protocol.

    A participant is identifiable by an external ID, or by full name, birth
    date and sex together.
    """

    birth_date = forms.DateField(required=False, widget=forms.DateInput(attrs={"type": "date"}))

    class Meta:
        model = Participant
        fields = ["protocol", "external_id", "full_name", "birth_date", "sex", "contact_email"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.helper = FormHelper()
        self.helper.add_input(Submit("submit", _("Create participant link")))

    def clean_external_id(self):
        return self.cleaned_data.get("external_id", "").strip()

    def clean_full_name(self):
        return self.cleaned_data.get("full_name", "").strip()

    def clean_birth_date(self):
        birth_date = self.cleaned_data.get("birth_date")
        if birth_date:
            error = check_birth_date(birth_date)
            if error:
                raise forms.ValidationError(error)
        return birth_date

    def clean(self):
        cleaned_data = super().clean()
        has_external_id = bool(cleaned_data.get("external_id"))
        has_identity = all(cleaned_data.get(name) for name in ("full_name", "birth_date", "sex"))
        # A rejected birth date already carries its own error.
        if not has_external_id and not has_identity and "birth_date" not in self.errors:
            raise forms.ValidationError(
                _("Give an external ID, or full name, birth date and sex."),
                code="identity_required",
            )
        return cleaned_data
