"""Change-notification plugin system (pluggy)."""

import pluggy

hookimpl = pluggy.HookimplMarker("tasksync")
