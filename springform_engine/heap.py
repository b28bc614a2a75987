# springform_engine/heap.py

import numpy as np
import numba


@numba.njit
def _sift_up(priority, payload, index):
    while index > 0:
        parent = (index - 1) // 2
        if priority[parent] <= priority[index]:
            break
        priority[parent], priority[index] = priority[index], priority[parent]
        payload[parent], payload[index] = payload[index], payload[parent]
        index = parent


@numba.njit
def _sift_down(priority, payload, size):
    index = 0
    while True:
        child = 2 * index + 1
        if child >= size:
            break
        if child + 1 < size and priority[child + 1] < priority[child]:
            child += 1
        if priority[index] <= priority[child]:
            break
        priority[child], priority[index] = priority[index], priority[child]
        payload[child], payload[index] = payload[index], payload[child]
        index = child


class FitnessHeap:
    """
    Fixed-capacity binary min-heap of (priority, payload) pairs.
    Storage is preallocated, so push/pop never allocate. Lower priority pops first.
    """
    def __init__(self, capacity):
        self.capacity = capacity
        self.priority = np.empty(capacity, dtype=np.float64)
        self.payload = np.empty(capacity, dtype=np.int64)
        self.size = 0

    def __len__(self):
        return self.size

    def is_empty(self):
        return self.size == 0

    def clear(self):
        self.size = 0

    def push(self, priority, payload):
        if self.size >= self.capacity:
            raise IndexError(f"FitnessHeap is full (capacity {self.capacity})")
        self.priority[self.size] = priority
        self.payload[self.size] = payload
        _sift_up(self.priority, self.payload, self.size)
        self.size += 1

    def top(self):
        """Lowest (priority, payload) without removing it."""
        if self.size == 0:
            raise IndexError("top of an empty FitnessHeap")
        return float(self.priority[0]), int(self.payload[0])

    def pop(self):
        entry = self.top()
        self.size -= 1
        if self.size > 0:
            self.priority[0] = self.priority[self.size]
            self.payload[0] = self.payload[self.size]
            _sift_down(self.priority, self.payload, self.size)
        return entry
