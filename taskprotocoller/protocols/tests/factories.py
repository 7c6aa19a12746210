from factory import Dict
from factory import Faker
from factory import Sequence
from factory import SubFactory
from factory.django import DjangoModelFactory

from taskprotocoller.protocols.models import Project
from taskprotocoller.protocols.models import Protocol
from taskprotocoller.protocols.models import ProtocolTask


class ProjectFactory(DjangoModelFactory):
    name = Faker("company")
    country = "CZ"
    contact_person = Faker("name")

    class Meta:
        model = Project


class ProtocolFactory(DjangoModelFactory):
    project = SubFactory(ProjectFactory)
    name = Sequence(lambda n: f"Protocol {n}")
    language = "en"

    class Meta:
        model = Protocol


class ProtocolTaskFactory(DjangoModelFactory):
    protocol = SubFactory(ProtocolFactory)
    position = Sequence(lambda n: n)
    category = "phonation"
    params = Dict({})

    class Meta:
        model = ProtocolTask


def protocol_with_tasks(*categories, **kwargs):
    """Create a protocol whose tasks have the given categories, in order."""
    protocol = ProtocolFactory(**kwargs)
    for position, category in enumerate(categories):
        ProtocolTaskFactory(protocol=protocol, position=position, category=category)
    return protocol
