"""Switch between SSH key pairs and their Git identities."""
