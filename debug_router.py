#!/usr/bin/env python3
"""
Classify requests against the rule table without invoking any specialist.

Usage:
    python debug_router.py "How do I save player settings?"
    python debug_router.py --domains config,ui "Now let's implement this"
    python debug_router.py --dump-registry
"""
import argparse
import sys

from switchboard.config import settings
from switchboard.routing.classifier import Classifier
from switchboard.routing.errors import RoutingError
from switchboard.routing.handler_registry import dump_registry, load_registry
from switchboard.routing.rule_table import RuleTable
from switchboard.routing.schemas import HandlerId, Request, WorkflowStage
from switchboard.session.state import WorkflowState


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("text", nargs="*", help="Request text to classify")
    parser.add_argument("--stage", choices=[s.value for s in WorkflowStage], default="research")
    parser.add_argument("--domains", default="", help="Comma-separated handler ids already touched")
    parser.add_argument("--brief", default=None, help="Pretend an implementation brief exists")
    parser.add_argument("--dump-registry", action="store_true", help="Print the registry as JSON")
    args = parser.parse_args()

    specs = load_registry(settings.switchboard_registry_path)
    if args.dump_registry:
        print(dump_registry(specs))
        return 0

    if not args.text:
        parser.error("request text is required")

    table = RuleTable(specs)
    for first, second in table.precedence_gaps():
        print(f"warning: no precedence between {first.value} and {second.value}")

    state = WorkflowState(stage=WorkflowStage(args.stage), brief=args.brief)
    for name in filter(None, (d.strip() for d in args.domains.split(","))):
        state.domains_touched.add(HandlerId(name))

    classifier = Classifier(table, domain_threshold=settings.switchboard_domain_threshold)
    request = Request(text=" ".join(args.text), session_id="debug")
    try:
        decision = classifier.classify(request, state)
    except RoutingError as exc:
        print(f"{exc.kind}: {exc.message}")
        return 1

    print(decision.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
