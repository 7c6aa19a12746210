"""Management command to print a simulated participant run of a protocol."""
from django.core.management.base import BaseCommand
from django.core.management.base import CommandError

from taskprotocoller.protocols.helpers.preview import simulate_run
from taskprotocoller.protocols.models import Protocol


def _describe(task: dict) -> str:
    text = f"{task['category']} ({task['type']})"
    if task.get("task_param"):
        text += f" [{task['task_param']}]"
    if task.get("repeat_index") and task["repeat_index"] > 1:
        text += f" #{task['repeat_index']}"
    return text


class Command(BaseCommand):
    help = "Print the randomized task order and block structure of a protocol."

    def add_arguments(self, parser):
        parser.add_argument("protocol_id", type=int)
        parser.add_argument(
            "--seed",
            default=None,
            help="Seed to reproduce a previous order. Defaults to a fresh random seed.",
        )

    def handle(self, *args, **options):
        try:
            protocol = Protocol.objects.get(pk=options["protocol_id"])
        except Protocol.DoesNotExist as exc:
            raise CommandError(f"Protocol {options['protocol_id']} does not exist") from exc

        preview = simulate_run(protocol, seed=options["seed"])
        self.stdout.write(f"Protocol: {protocol} (strategy: {preview['randomization']['strategy']})")
        self.stdout.write(f"Seed: {preview['seed']}")
        self.stdout.write("Order:")
        for position, task in enumerate(preview["order"], start=1):
            self.stdout.write(f"  {position:>2}. {_describe(task)}")
        self.stdout.write("Blocks:")
        for number, block in enumerate(preview["blocks"], start=1):
            self.stdout.write(f"  {number}: " + ", ".join(_describe(task) for task in block))
        self.stdout.write(self.style.SUCCESS(f"Done: {len(preview['order'])} step(s)."))
