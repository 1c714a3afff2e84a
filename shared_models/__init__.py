# Code shared by the Statistics API and the Device Registration API:
# the device type enumeration, wire models, the registration record and
# the database helpers.
