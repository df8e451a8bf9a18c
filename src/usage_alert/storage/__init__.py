# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from usage_alert.storage.file import FileStore
from usage_alert.storage.interface import UsageRecordStore
from usage_alert.storage.memory import MemoryStore

__all__ = ["UsageRecordStore", "MemoryStore", "FileStore"]
