# Workflow context shared between turns
#
# +---------------------------+
# |      Memory Store         |   (in-process, unbounded)
# |---------------------------|
# | <action>-<workflowId>     |
# |   -> validated payload    |
# +---------------------------+
#
# A query turn writes one entry per action the skill offers;
# a later "@ber <action> <workflowId>" turn reads it back.
