#!/usr/bin/env python3
"""
Completions Tracker — Demo Data Seed Script.

Creates one project with a system, two subsystems, ITRs, punch items, tags
and preservation tasks (see completions/services/seed_service.py).

Usage:
    python scripts/seed_demo_data.py
    python scripts/seed_demo_data.py --code DEMO-02
    python scripts/seed_demo_data.py --reset
"""

import argparse
import logging
import sys

sys.path.insert(0, ".")

from completions import create_app  # noqa: E402
from completions.models import db  # noqa: E402
from completions.models.project import Project  # noqa: E402
from completions.services.seed_service import seed_demo_project  # noqa: E402

logger = logging.getLogger("seed_demo_data")


def main():
    parser = argparse.ArgumentParser(description="Seed the demo completions project")
    parser.add_argument("--code", default="DEMO-01", help="Project code to create")
    parser.add_argument("--reset", action="store_true",
                        help="Delete an existing project with the same code first")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        existing = Project.query.filter_by(code=args.code).first()
        if existing:
            if not args.reset:
                logger.error("Project %s already exists (use --reset).", args.code)
                return 1
            db.session.delete(existing)
            db.session.commit()

        project = seed_demo_project(code=args.code)
        db.session.commit()
        system = project.systems.first()
        logger.info("Seeded project %s id=%s system=%s", project.code, project.id, system.id)
    return 0


if __name__ == "__main__":
    sys.exit(main())
