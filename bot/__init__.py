"""Discord front end for the tracker."""
