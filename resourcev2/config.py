"""Configuration settings for the ResourceV2 admission plugin."""

# Registration
PLUGIN_NAME = "ResourceV2"
HANDLED_OPERATIONS = ("CREATE", "UPDATE")

# Object filter
POD_GROUP = ""
POD_RESOURCE = "pods"
POD_KIND = "Pod"

# The device resource moved out of containers into extended resources
INTERCEPTED_RESOURCE = "nvidia.com/gpu"

# Regenerate an identifier that collides with an existing record at most this often
MAX_UID_ATTEMPTS = 5

# Serialized field names
EXTENDED_RESOURCES_FIELD = "extendedResources"
EXTENDED_RESOURCE_REQUESTS_FIELD = "extendedResourceRequests"

# Plugin configuration keys
CONFIG_INTERCEPTED_RESOURCE = "interceptedResource"
