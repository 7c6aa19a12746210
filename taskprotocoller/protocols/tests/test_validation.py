import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone

from taskprotocoller.protocols.forms import ProtocolForm
from taskprotocoller.protocols.helpers.validation import validate_protocol
from taskprotocoller.protocols.helpers.validation import validate_protocol_params
from taskprotocoller.protocols.models import Project
from taskprotocoller.protocols.tests.factories import ProjectFactory
from taskprotocoller.protocols.tests.factories import ProtocolFactory
from taskprotocoller.protocols.tests.factories import ProtocolTaskFactory
from taskprotocoller.users.tests.factories import UserFactory


class TestValidateProtocolParams:
    def test_valid(self):
        assert validate_protocol_params("phonation", {"vowel": "u", "repeat": 2}) == []

    def test_empty_params(self):
        assert validate_protocol_params("reading", {}) == []
        assert validate_protocol_params("reading", None) == []

    def test_unknown_category(self):
        assert validate_protocol_params("juggling", {}) == ["Unknown task category 'juggling'"]

    def test_unknown_param(self):
        errors = validate_protocol_params("reading", {"speed": "fast"})
        assert errors == ["Unknown parameter 'speed' for 'reading'"]

    def test_disallowed_value(self):
        [error] = validate_protocol_params("ddk", {"syllable": "ba"})
        assert "'ba'" in error
        assert "pataka" in error

    @pytest.mark.parametrize("repeat", [0, -1, "2", True])
    def test_bad_repeat(self, repeat):
        assert validate_protocol_params("phonation", {"repeat": repeat}) == [
            "'repeat' must be a positive whole number"
        ]

    def test_params_not_object(self):
        assert validate_protocol_params("reading", ["rainbow"]) == ["Task parameters must be an object"]


class TestValidateProtocol:
    def test_valid(self):
        assert validate_protocol({"name": "Pilot", "language": "en", "tasks": ["x"]}) == {}

    def test_all_missing(self):
        assert set(validate_protocol({"name": "  "})) == {"name", "language", "tasks"}


@pytest.mark.django_db
class TestProtocolClean:
    def test_duplicate_active_name_rejected(self):
        ProtocolFactory(name="Voice Pilot")
        clash = ProtocolFactory.build(name="  voice pilot ", project=ProjectFactory())
        with pytest.raises(ValidationError) as excinfo:
            clash.clean()
        assert "name" in excinfo.value.message_dict

    def test_inactive_duplicate_allowed(self):
        ProtocolFactory(name="Voice Pilot")
        ProtocolFactory.build(name="Voice Pilot", is_active=False, project=ProjectFactory()).clean()

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            ProtocolFactory.build(name="   ", project=ProjectFactory()).clean()

    def test_task_params_checked(self):
        task = ProtocolTaskFactory(category="phonation")
        task.params = {"vowel": "o"}
        with pytest.raises(ValidationError) as excinfo:
            task.full_clean()
        assert "params" in excinfo.value.message_dict


@pytest.mark.django_db
class TestProtocolForm:
    def test_name_is_stripped(self):
        project = ProjectFactory()
        form = ProtocolForm(
            data={
                "project": project.pk,
                "name": "  Study A ",
                "language": "en",
                "randomization": '{"strategy": "none"}',
                "is_active": True,
            }
        )
        assert form.is_valid(), form.errors
        assert form.save().name == "Study A"

    def test_duplicate_name_is_a_form_error(self):
        ProtocolFactory(name="Study A")
        form = ProtocolForm(
            data={
                "project": ProjectFactory().pk,
                "name": "study a",
                "language": "en",
                "randomization": "{}",
                "is_active": True,
            }
        )
        assert not form.is_valid()
        assert "name" in form.errors


@pytest.mark.django_db
class TestProject:
    def test_deactivate_sets_end_date(self):
        project = ProjectFactory()
        project.set_active(False)
        project.refresh_from_db()
        assert project.is_active is False
        assert project.end_date == timezone.localdate()

    def test_reactivate_clears_end_date(self):
        project = ProjectFactory()
        project.set_active(False)
        project.set_active(True)
        project.refresh_from_db()
        assert project.end_date is None

    def test_master_sees_all_projects(self):
        ProjectFactory.create_batch(2)
        master = UserFactory(role="master")
        assert Project.objects.visible_to(master).count() == 2

    def test_admin_sees_assigned_projects(self):
        assigned, _other = ProjectFactory.create_batch(2)
        researcher = UserFactory()
        assigned.researchers.add(researcher)
        assert list(Project.objects.visible_to(researcher)) == [assigned]
