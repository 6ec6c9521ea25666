"""imgtrust CLI: runs the verification tool from the command line."""
