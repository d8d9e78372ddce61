# This module handles context assembly for one completion call

# +-----------------------------+
# |      Memory                 |   (Persistent, per agent + user)
# |-----------------------------|
# | Extracted key points        |
# | Embeddings (pgvector)       |
# | Update counter              |
# +-----------------------------+

# +-----------------------------+
# |      Rules                  |   (Stored config, reparsed per request)
# |-----------------------------|
# | System behavior rules       |
# | Agent behavior rules        |
# | Agent profile values        |
# +-----------------------------+

#    \    /
#     \  /
#      \/
# +------------------------------+
# |           Context            |   (Ordered message list)
# |------------------------------|
# | System prompt                |
# | System rules, agent rules    |
# | Relevant memories            |
# | History + new user message   |
# +------------------------------+
#         |
#         v
#   [Completion call] -> reply extraction -> memory lifecycle
