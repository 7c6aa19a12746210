from crispy_forms.helper import FormHelper
from crispy_forms.layout import Submit
from django.forms import ModelForm
from django.utils.translation import gettext_lazy as _

from .models import Protocol


class ProtocolForm(ModelForm):
    class Meta:
        model = Protocol
        fields = [
            "project",
            "name",
            "description",
            "language",
            "info_text",
            "consent_text",
            "questionnaire",
            "randomization",
            "is_active",
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.helper = FormHelper()
        self.helper.add_input(Submit("submit", _("Save protocol")))

    def clean_name(self):
        return self.cleaned_data["name"].strip()
