# Internal Device Registration API.
