"""
Supporters sync – collect Open Collective backers and sponsors for the docs.

Supports:
  • Paging through every order of a collective
  • Merging repeat donors into a single supporter
  • Splitting supporters into sponsors and backers
  • Downloading avatars, with placeholders for anything that isn't a PNG
"""
