# Lambda handlers package
