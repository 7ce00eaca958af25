# hierarchy.py - Department Hierarchy Resolver
# Computes the set of departments at or below a root department.
# The tree is rebuilt from a fresh snapshot per call; nothing is cached across requests.

import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Set

from models import Department
from store import TaskStore

logger = logging.getLogger("taskmgr.hierarchy")


class DepartmentTree:
    """Arena of departments keyed by id with parent -> children links"""

    def __init__(self, departments: Iterable[Department]):
        self.nodes: Dict[str, Department] = {}
        self.children: Dict[str, List[str]] = {}
        for dept in departments:
            self.nodes[dept.id] = dept
            self.children.setdefault(dept.id, [])
        for dept in self.nodes.values():
            if dept.parent_id is not None:
                self.children.setdefault(dept.parent_id, []).append(dept.id)

    @classmethod
    def from_parent_map(cls, parents: Dict[str, Optional[str]]) -> "DepartmentTree":
        """Build a tree from {id: parent_id}; handy outside the database"""
        return cls(Department(id=dept_id, name=dept_id, parent_id=parent_id) for dept_id, parent_id in parents.items())

    def __contains__(self, department_id: str) -> bool:
        return department_id in self.nodes

    def subordinates(self, root_id: str) -> Set[str]:
        """Root plus every descendant, breadth-first. Unknown root -> empty set."""
        if root_id not in self.nodes:
            return set()

        visited = {root_id}
        queue = deque([root_id])
        while queue:
            current = queue.popleft()
            for child_id in self.children.get(current, ()):
                if child_id in visited:
                    logger.warning(
                        f"Department cycle detected: {current} -> {child_id} (root {root_id})"
                    )
                    continue
                visited.add(child_id)
                queue.append(child_id)
        return visited


class HierarchyResolver:
    """Store-backed resolver; reads the department snapshot on every call"""

    def __init__(self, store: TaskStore):
        self.store = store

    async def load_tree(self) -> DepartmentTree:
        return DepartmentTree(await self.store.find_all_departments())

    async def get_subordinate_departments(self, root_id: str) -> Set[str]:
        if not root_id:
            return set()
        tree = await self.load_tree()
        hierarchy = tree.subordinates(root_id)
        if not hierarchy:
            logger.debug(f"Department {root_id} not found; empty hierarchy")
        return hierarchy
