"""tracklog core library: personal time, sleep, habit, workout and contact tracking.

Public API re-exports for convenient imports:
    from tracker import TrackerService, Settings, day_key, ...
"""

# Calendar keys
from tracker.calendar_keys import (
    day_key,
    week_key,
    last_day_keys,
    hour_of_day,
    localize,
    next_occurrence,
    next_time_of_day,
)

# Workspace, settings & logging
from tracker.config import (
    workspace_root,
    state_path,
    notifications_path,
    settings_path,
    hooks_config_path,
    Settings,
    SystemClock,
    load_settings,
    setup_logging,
)

# Errors
from tracker.errors import TrackerError, NotFoundError, InvalidStateError

# Persistence
from tracker.store import PersistenceStore, MemoryStore, JsonFileStore

# Notifications
from tracker.notifications import (
    Notification,
    NotificationScheduler,
    InMemoryScheduler,
    JsonFileScheduler,
)

# Service
from tracker.service import TrackerService
from tracker.workouts import WorkoutExecution

# Models
from tracker.models import (
    CategoryKind,
    HabitType,
    ExerciseType,
    ContactClass,
    Category,
    CurrentTime,
    SleepSession,
    SleepState,
    SleepStatistics,
    HabitEntry,
    Habit,
    HabitStats,
    Exercise,
    WorkoutSet,
    CompletedExerciseSet,
    CompletedWorkoutSession,
    Workout,
    ScheduledCall,
    ContactProfile,
    TrackerData,
)
