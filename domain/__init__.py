"""Describes the recipe planner domain. Centres around the `RecipeSynchronizer`.

Why is this hard?

- It mostly isn't. Recipes come from an external api, social data lives in a
  realtime database, and both sit behind the network.
- The one rule worth enforcing: when the network is gone, fall back to the
  local cache rather than failing.
- Favorites have to land remotely before they change locally.
- No conflict resolution. Last write wins everywhere.

Everything remote can be faked with an `httpx.MockTransport`.
"""
