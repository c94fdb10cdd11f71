"""
Reminder task subsystem.

Components:
- task_models.py: data structures (Task, CreateResult, DispatchResult, ScanReport)
- task_errors.py: error taxonomy (FormatError, ExpiredError, StoreError, DispatchError)
- task_parser.py: "dd.mm.yyyy hh:mm text" grammar
- task_store.py: SQLite-backed storage (save / find_due / delete)
- task_service.py: reminder creation and the inbound reply texts
- task_scheduler.py: polling scheduler that delivers due reminders
"""
