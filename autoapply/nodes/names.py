"""Step names of the application workflow."""

PREPARE_RESOURCE = "prepare_resource"
HANDLE_ACCOUNT = "handle_account"
FILL_FORM = "fill_form"
SUBMIT = "submit"
