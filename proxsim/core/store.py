"""
Proxel store: arena-backed binary search trees of probability elements.

A proxel is a quantum of probability mass sitting in a discrete state
with one or two discretised age counters. The store keeps proxels of
one generation in an ordered binary tree keyed by a composite integer
id, so that successors arriving with the same (state, ages) combination
are merged rather than duplicated.

Storage is organised as an arena. ``ProxelPool`` holds every record in
parallel numpy arrays and hands out integer handles; released handles
are threaded onto a free list through their ``right`` link and reused
before the arena grows. ``ProxelTree`` is a single generation: a root
handle plus the links stored in the shared pool. Two trees share one
pool during a run and alternate roles every time step, so any handle is
owned by exactly one of the two trees or the free list at a time.

The trees are not rebalanced. Ordered insertion sequences degrade them
to linked lists, which costs time but never correctness.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import numpy as np

#: Null handle
NIL = -1


class ProxelTreeError(RuntimeError):
    """Structural invariant of a proxel tree was violated."""


def encode_id(state: int, age1: int, age2: int, horizon: int) -> int:
    """Map ``(state, age1, age2)`` onto a unique integer key."""
    return horizon * (horizon * state + age1) + age2


def decode_id(pid: int, horizon: int) -> Tuple[int, int, int]:
    """Invert ``encode_id`` for ages within ``[0, horizon)``."""
    rest, age2 = divmod(pid, horizon)
    state, age1 = divmod(rest, horizon)
    return state, age1, age2


@dataclass
class Proxel:
    """Value snapshot of a proxel taken out of a tree."""
    pid: int
    state: int
    age1: int
    age2: int
    mass: float


class ProxelPool:
    """Arena of proxel records with a free list of reusable handles.

    The arena doubles its capacity when exhausted. ``live`` counts the
    handles currently held by trees and ``peak_live`` records its high
    water mark, which bounds the memory needed by a run.
    """

    def __init__(self, capacity: int = 64):
        self.capacity = 0
        self.pid = np.zeros(0, dtype=np.int64)
        self.state = np.zeros(0, dtype=np.int64)
        self.age1 = np.zeros(0, dtype=np.int64)
        self.age2 = np.zeros(0, dtype=np.int64)
        self.mass = np.zeros(0, dtype=np.float64)
        self.left = np.zeros(0, dtype=np.int64)
        self.right = np.zeros(0, dtype=np.int64)
        self._grow(max(1, capacity))
        # records handed out from the tail of the arena so far
        self.allocated = 0
        self.free_head = NIL
        self.free_count = 0
        self.live = 0
        self.peak_live = 0

    def _grow(self, capacity: int) -> None:
        def extend(arr: np.ndarray, fill) -> np.ndarray:
            out = np.full(capacity, fill, dtype=arr.dtype)
            out[: arr.shape[0]] = arr
            return out

        self.pid = extend(self.pid, 0)
        self.state = extend(self.state, 0)
        self.age1 = extend(self.age1, 0)
        self.age2 = extend(self.age2, 0)
        self.mass = extend(self.mass, 0.0)
        self.left = extend(self.left, NIL)
        self.right = extend(self.right, NIL)
        self.capacity = capacity

    def allocate(self, pid: int, state: int, age1: int, age2: int, mass: float) -> int:
        """Return a handle initialised with the given values and no children."""
        if self.free_head != NIL:
            handle = self.free_head
            self.free_head = int(self.right[handle])
            self.free_count -= 1
        else:
            if self.allocated == self.capacity:
                self._grow(self.capacity * 2)
            handle = self.allocated
            self.allocated += 1
        self.pid[handle] = pid
        self.state[handle] = state
        self.age1[handle] = age1
        self.age2[handle] = age2
        self.mass[handle] = mass
        self.left[handle] = NIL
        self.right[handle] = NIL
        self.live += 1
        if self.live > self.peak_live:
            self.peak_live = self.live
        return handle

    def release(self, handle: int) -> None:
        """Push ``handle`` onto the free list, reusing its right link."""
        self.left[handle] = NIL
        self.right[handle] = self.free_head
        self.free_head = handle
        self.free_count += 1
        self.live -= 1

    def snapshot(self, handle: int) -> Proxel:
        return Proxel(
            pid=int(self.pid[handle]),
            state=int(self.state[handle]),
            age1=int(self.age1[handle]),
            age2=int(self.age2[handle]),
            mass=float(self.mass[handle]),
        )


class ProxelTree:
    """One generation of proxels organised as an unbalanced search tree."""

    def __init__(self, pool: ProxelPool, horizon: int, rng: Optional[np.random.Generator] = None):
        self.pool = pool
        self.horizon = horizon
        self.rng = rng if rng is not None else np.random.default_rng()
        self.root = NIL
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def __bool__(self) -> bool:
        return self.root != NIL

    def size(self) -> int:
        return self._count

    def is_empty(self) -> bool:
        return self.root == NIL

    def insert(self, state: int, age1: int, age2: int, mass: float) -> int:
        """Add mass at ``(state, age1, age2)``, merging with an equal id.

        Ages beyond the horizon are clamped to ``horizon - 1``. Returns
        the handle now holding the mass.
        """
        top = self.horizon - 1
        if age1 > top:
            age1 = top
        if age2 > top:
            age2 = top
        pid = encode_id(state, age1, age2, self.horizon)
        pool = self.pool

        if self.root == NIL:
            self.root = pool.allocate(pid, state, age1, age2, mass)
            self._count += 1
            return self.root

        # locate insertion point
        node = self.root
        ids, left, right = pool.pid, pool.left, pool.right
        while True:
            nid = int(ids[node])
            if pid < nid and left[node] != NIL:
                node = int(left[node])
            elif pid > nid and right[node] != NIL:
                node = int(right[node])
            else:
                break

        nid = int(pool.pid[node])
        if pid < nid:
            handle = pool.allocate(pid, state, age1, age2, mass)
            pool.left[node] = handle
            self._count += 1
            return handle
        if pid > nid:
            handle = pool.allocate(pid, state, age1, age2, mass)
            pool.right[node] = handle
            self._count += 1
            return handle
        if pid == nid:
            pool.mass[node] += mass
            return node
        raise ProxelTreeError(f"insertion of id {pid} matched no case at node {node} (id {nid})")

    def extract_any(self) -> Optional[Proxel]:
        """Detach a leaf reached by a random descent and return its values.

        The released handle goes back to the pool. Returns ``None`` for
        an empty tree.
        """
        if self.root == NIL:
            return None
        pool = self.pool
        left, right = pool.left, pool.right
        node = self.root
        parent = NIL
        went_left = False
        # move down the tree to a leaf
        while True:
            lchild = int(left[node])
            rchild = int(right[node])
            if lchild != NIL and rchild != NIL:
                went_left = self.rng.random() > 0.5
            elif lchild != NIL:
                went_left = True
            elif rchild != NIL:
                went_left = False
            else:
                break
            parent = node
            node = lchild if went_left else rchild

        if parent == NIL:
            self.root = NIL
        elif went_left:
            left[parent] = NIL
        else:
            right[parent] = NIL
        proxel = pool.snapshot(node)
        pool.release(node)
        self._count -= 1
        return proxel

    def _handles(self) -> Iterator[int]:
        # pre-order walk
        if self.root == NIL:
            return
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            rchild = int(self.pool.right[node])
            lchild = int(self.pool.left[node])
            if rchild != NIL:
                stack.append(rchild)
            if lchild != NIL:
                stack.append(lchild)

    def iter_proxels(self) -> Iterator[Proxel]:
        """Yield snapshots of all proxels in pre-order without removing them."""
        for node in self._handles():
            yield self.pool.snapshot(node)

    def proxels(self) -> List[Proxel]:
        return list(self.iter_proxels())

    def total_mass(self) -> float:
        return float(sum(self.pool.mass[node] for node in self._handles()))

    def count_leaves(self) -> int:
        pool = self.pool
        return sum(
            1 for node in self._handles()
            if pool.left[node] == NIL and pool.right[node] == NIL
        )

    def clear(self) -> None:
        """Return every node of the tree to the pool."""
        nodes = list(self._handles())
        for node in nodes:
            self.pool.release(node)
        self.root = NIL
        self._count = 0
