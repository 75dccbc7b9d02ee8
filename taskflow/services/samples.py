"""Seed data and the default color palette."""

import random

from taskflow.models import TaskPriority, TaskStatus

COLOR_PALETTE = (
    "#6366f1",
    "#10b981",
    "#f59e0b",
    "#ef4444",
    "#8b5cf6",
    "#3b82f6",
    "#ec4899",
    "#14b8a6",
    "#f97316",
    "#64748b",
)

SAMPLE_TASKS = (
    {
        "name": "Welcome to TaskFlow!",
        "description": "This is your first task. You can edit or delete it.",
        "color": "#6366f1",
        "category": "work",
        "priority": TaskPriority.medium.value,
        "status": TaskStatus.not_started.value,
    },
    {
        "name": "Plan weekly goals",
        "description": "Set objectives for the upcoming week",
        "color": "#10b981",
        "category": "personal",
        "priority": TaskPriority.high.value,
        "status": TaskStatus.in_progress.value,
    },
    {
        "name": "Grocery shopping",
        "description": "Milk, eggs, bread, fruits, and vegetables",
        "color": "#f59e0b",
        "category": "shopping",
        "priority": TaskPriority.low.value,
        "status": TaskStatus.completed.value,
    },
    {
        "name": "Learn Kubernetes basics",
        "description": "Complete the Kubernetes fundamentals course",
        "color": "#8b5cf6",
        "category": "learning",
        "priority": TaskPriority.medium.value,
        "status": TaskStatus.in_progress.value,
    },
)


def random_color() -> str:
    return random.choice(COLOR_PALETTE)
