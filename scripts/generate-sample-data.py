#!/usr/bin/env python3
"""
Task Manager - Sample Data Generator
Generates a consistent department tree, user profiles, projects and tasks
that respect the task invariants (1-5 assignees, subtask depth 2, subtask
due dates within the parent's). Used for development and demo environments.

Usage:
    python scripts/generate-sample-data.py
    python scripts/generate-sample-data.py --divisions 4 --teams 3 --tasks 80 --output sample-data.json
"""

import json
import random
import uuid
import argparse
from datetime import datetime, timedelta, timezone
from typing import Any


# ── Configuration ───────────────────────────────────────────

DIVISION_NAMES = ["Engineering", "Operations", "Finance", "Marketing", "Sales", "Legal"]
TEAM_SUFFIXES = ["Platform", "Support", "Analytics", "Delivery", "Quality", "Research"]
TASK_STATUSES = ["TO_DO", "TO_DO", "IN_PROGRESS", "IN_PROGRESS", "COMPLETED", "BLOCKED"]
PROJECT_STATUSES = ["ACTIVE", "ACTIVE", "ACTIVE", "ON_HOLD", "COMPLETED"]
TASK_VERBS = ["Draft", "Review", "Migrate", "Audit", "Prepare", "Fix", "Plan", "Document"]
TASK_OBJECTS = ["quarterly report", "onboarding guide", "billing export", "vendor contract",
                "release checklist", "incident review", "budget forecast", "access matrix"]
TAGS = ["urgent", "q3", "q4", "customer", "internal", "compliance", "follow-up"]

FIRST_NAMES = ["Alex", "Jordan", "Taylor", "Morgan", "Casey", "Riley", "Quinn", "Avery", "Sage", "River",
               "Kai", "Rowan", "Phoenix", "Skyler", "Dakota", "Reese", "Finley", "Harper", "Emery", "Blake"]
LAST_NAMES = ["Chen", "Patel", "Kim", "Santos", "Müller", "Okafor", "Tanaka", "Johansson", "Silva", "Kowalski",
              "Nguyen", "Andersen", "Dubois", "Rossi", "Yamamoto", "Petrov", "Larsson", "Fernandez", "Ali", "Park"]
DOMAIN = "example.com"

MAX_ASSIGNEES = 5


class SampleDataGenerator:
    """Generates realistic sample data for the task manager."""

    def __init__(self, seed: int = 42):
        random.seed(seed)
        self.seed = seed
        self.now = datetime.now(timezone.utc)
        self._emails = set()

    def _uuid(self) -> str:
        return str(uuid.uuid4())

    def _past_date(self, max_days: int = 365) -> str:
        delta = timedelta(days=random.randint(0, max_days), hours=random.randint(0, 23))
        return (self.now - delta).isoformat()

    def _future(self, min_days: int, max_days: int) -> datetime:
        return self.now + timedelta(days=random.randint(min_days, max_days))

    # ── Generators ──────────────────────────────────────────

    def generate_department(self, name: str, parent_id: str | None = None) -> dict:
        return {
            "id": self._uuid(),
            "name": name,
            "parent_id": parent_id,
            "is_active": random.random() > 0.05,
            "created_at": self._past_date(730),
        }

    def generate_user(self, department_id: str, role: str = "STAFF") -> dict:
        first = random.choice(FIRST_NAMES)
        last = random.choice(LAST_NAMES)
        email = f"{first.lower()}.{last.lower()}@{DOMAIN}"
        counter = 1
        while email in self._emails:
            counter += 1
            email = f"{first.lower()}.{last.lower()}{counter}@{DOMAIN}"
        self._emails.add(email)
        return {
            "id": self._uuid(),
            "email": email,
            "name": f"{first} {last}",
            "role": role,
            "department_id": department_id,
            "is_active": random.random() > 0.03,
            "created_at": self._past_date(365),
        }

    def generate_project(self, index: int, owner: dict) -> dict:
        return {
            "id": self._uuid(),
            "name": f"{random.choice(TASK_OBJECTS).title()} Initiative {index:02d}",
            "description": f"Cross-team initiative #{index}",
            "priority": random.randint(1, 10),
            "status": random.choice(PROJECT_STATUSES),
            "department_id": owner["department_id"],
            "creator_id": owner["id"],
            "is_archived": random.random() < 0.1,
            "created_at": self._past_date(180),
        }

    def generate_task(self, owner: dict, assignees: list[dict], due: datetime,
                      project_id: str | None = None, parent_task_id: str | None = None) -> dict:
        status = random.choice(TASK_STATUSES)
        return {
            "id": self._uuid(),
            "title": f"{random.choice(TASK_VERBS)} {random.choice(TASK_OBJECTS)}",
            "description": "Generated sample task",
            "priority": random.randint(1, 10),
            "due_date": due.isoformat(),
            "status": status,
            "owner_id": owner["id"],
            "department_id": owner["department_id"],
            "project_id": project_id,
            "parent_task_id": parent_task_id,
            "is_archived": False,
            "start_date": self._past_date(14) if status != "TO_DO" else None,
            "assignee_ids": [a["id"] for a in assignees],
            "tags": random.sample(TAGS, k=random.randint(0, 2)),
            "created_at": self._past_date(60),
        }

    # ── Main Generator ──────────────────────────────────────

    def generate_all(self, counts: dict[str, int] | None = None) -> dict[str, Any]:
        c = counts or {"divisions": 3, "teams": 2, "staff_per_team": 4, "projects": 6, "tasks": 40}

        company = self.generate_department("Company")
        hr = self.generate_department("HR", company["id"])
        departments = [company, hr]
        leaves = []
        for name in DIVISION_NAMES[:c["divisions"]]:
            division = self.generate_department(name, company["id"])
            departments.append(division)
            for suffix in TEAM_SUFFIXES[:c["teams"]]:
                team = self.generate_department(f"{name} {suffix}", division["id"])
                departments.append(team)
                leaves.append(team)

        users = [self.generate_user(hr["id"], "HR_ADMIN")]
        for dept in departments:
            if dept is not hr:
                users.append(self.generate_user(dept["id"], "MANAGER"))
        for team in leaves:
            users.extend(self.generate_user(team["id"]) for _ in range(c["staff_per_team"]))
        active = [u for u in users if u["is_active"]]

        projects = [self.generate_project(i, random.choice(active)) for i in range(c["projects"])]
        grants = []
        for project in projects:
            for dept in random.sample(departments, k=random.randint(0, 2)):
                if dept["id"] != project["department_id"]:
                    grants.append({"project_id": project["id"], "department_id": dept["id"]})

        tasks = []
        collaborators = {}
        for _ in range(c["tasks"]):
            owner = random.choice(active)
            project = random.choice(projects + [None, None])
            project_id = project["id"] if project else None
            assignees = random.sample(active, k=random.randint(1, MAX_ASSIGNEES))
            due = self._future(7, 60)
            parent = self.generate_task(owner, assignees, due, project_id)
            tasks.append(parent)

            for _ in range(random.randint(0, 2)):
                sub_assignees = random.sample(active, k=random.randint(1, 3))
                sub_due = due - timedelta(days=random.randint(0, 6))
                tasks.append(self.generate_task(owner, sub_assignees, sub_due, project_id, parent["id"]))
                assignees = assignees + sub_assignees

            if project_id:
                for user in assignees:
                    collaborators.setdefault((project_id, user["id"]), {
                        "project_id": project_id,
                        "user_id": user["id"],
                        "department_id": user["department_id"],
                    })

        return {
            "generated_at": self.now.isoformat(),
            "generator": "Task Manager Sample Data Generator v1.0",
            "seed": self.seed,
            "counts": {
                "departments": len(departments),
                "users": len(users),
                "projects": len(projects),
                "project_department_access": len(grants),
                "project_collaborators": len(collaborators),
                "tasks": len(tasks),
            },
            "data": {
                "departments": departments,
                "user_profiles": users,
                "projects": projects,
                "project_department_access": grants,
                "project_collaborators": list(collaborators.values()),
                "tasks": tasks,
            },
        }


# ── CLI ─────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Task Manager Sample Data Generator")
    parser.add_argument("--divisions", type=int, default=3, help="Number of divisions under the company root")
    parser.add_argument("--teams", type=int, default=2, help="Teams per division")
    parser.add_argument("--staff", type=int, default=4, help="Staff per team")
    parser.add_argument("--projects", type=int, default=6, help="Number of projects")
    parser.add_argument("--tasks", type=int, default=40, help="Top-level tasks")
    parser.add_argument("--output", type=str, default="sample-data.json", help="Output file")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--pretty", action="store_true", default=True, help="Pretty print JSON")
    args = parser.parse_args()

    generator = SampleDataGenerator(seed=args.seed)
    data = generator.generate_all({
        "divisions": min(args.divisions, len(DIVISION_NAMES)),
        "teams": min(args.teams, len(TEAM_SUFFIXES)),
        "staff_per_team": args.staff,
        "projects": args.projects,
        "tasks": args.tasks,
    })

    with open(args.output, "w") as f:
        json.dump(data, f, indent=2 if args.pretty else None, default=str)

    counts = data["counts"]
    print(f"Sample data generated: {args.output}")
    for name, count in counts.items():
        print(f"   {name}: {count}")
    print(f"   Total Records: {sum(counts.values())}")


if __name__ == "__main__":
    main()
