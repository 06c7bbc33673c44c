"""
Delayed delivery — defer payloads onto a work queue until a chosen time.

- Producers schedule payloads into a sorted set keyed "<queue>-scheduler"
- A promotion (atomic Lua script, or a three-step fallback) moves ready
  payloads onto the list "<queue>" in execution-time order
- Consumers block-pop the list on their own connection
"""
