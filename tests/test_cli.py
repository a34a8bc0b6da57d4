"""
Unit tests for CLI commands.
"""

import json

import numpy as np
import pytest

from phylosubst.cli.main import app

SEQ1 = "ACGTACGTACGTACGTACGTACGTACGTACGTACGTACGT"
SEQ2 = "GCGTACATACGTGCGTACGTACGCACGTACGTATGTACGT"


class TestCLIHelp:
    """Test help messages and basic CLI functionality."""

    def test_main_help(self, cli_runner):
        """Test main CLI help message."""
        result = cli_runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "transition" in result.stdout
        assert "info" in result.stdout
        assert "fit" in result.stdout

    def test_transition_help(self, cli_runner):
        """Test 'transition' command help message."""
        result = cli_runner.invoke(app, ["transition", "--help"])
        assert result.exit_code == 0
        assert "--model" in result.stdout or "-m" in result.stdout
        assert "--time" in result.stdout or "-t" in result.stdout


class TestCLITransition:
    """Test 'transition' command functionality."""

    def test_jc_text_output(self, cli_runner):
        """Test JC transition matrix as text."""
        result = cli_runner.invoke(app, ["transition", "-m", "JC", "-t", "0.1"])

        assert result.exit_code == 0
        assert "P(t):" in result.stdout
        assert "Jukes" in result.stdout

    def test_json_output(self, cli_runner):
        """Test HKY transition matrix as JSON."""
        result = cli_runner.invoke(app, [
            "transition", "-m", "HKY", "-t", "0.2",
            "-r", "1,4,1,1,4,1", "-f", "0.3,0.2,0.2,0.3",
            "--format", "json",
        ])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["model"] == "HKY"
        P = np.array(data["P"])
        assert P.shape == (4, 4)
        np.testing.assert_allclose(P.sum(axis=1), 1.0, atol=1e-10)
        assert P[0, 2] > P[0, 1]

    def test_derivatives(self, cli_runner):
        """Test that derivatives are included on request."""
        result = cli_runner.invoke(app, ["transition", "-m", "K80", "-t", "0.1", "-d", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        np.testing.assert_allclose(np.array(data["dP"]).sum(axis=1), 0.0, atol=1e-10)
        assert "d2P" in data

    def test_derivatives_text(self, cli_runner):
        result = cli_runner.invoke(app, ["transition", "-m", "JC", "-t", "0.1", "--derivatives"])

        assert result.exit_code == 0
        assert "dP/dt:" in result.stdout
        assert "d2P/dt2:" in result.stdout

    def test_many_states(self, cli_runner):
        """Test JC over 20 states."""
        result = cli_runner.invoke(
            app, ["transition", "-m", "JC", "-n", "20", "-t", "0.5", "--format", "json"]
        )

        assert result.exit_code == 0
        assert len(json.loads(result.stdout)["P"]) == 20

    def test_binary(self, cli_runner):
        """Test a binary model."""
        result = cli_runner.invoke(
            app, ["transition", "-m", "GTR2", "-f", "0.3,0.7", "-t", "1.0", "--format", "json"]
        )

        assert result.exit_code == 0
        assert np.array(json.loads(result.stdout)["P"]).shape == (2, 2)

    def test_zero_time(self, cli_runner):
        """Test that P(0) is printed as the identity."""
        result = cli_runner.invoke(
            app, ["transition", "-m", "GTR", "-r", "1,2,1,1,2,1", "-f", "0.1,0.2,0.3,0.4",
                  "-t", "0", "--format", "json"]
        )

        assert result.exit_code == 0
        np.testing.assert_array_equal(json.loads(result.stdout)["P"], np.eye(4))

    def test_unknown_model(self, cli_runner):
        """Test that an unknown model exits with an error."""
        result = cli_runner.invoke(app, ["transition", "-m", "XYZ", "-t", "0.1"])
        assert result.exit_code == 1

    def test_wrong_rate_count(self, cli_runner):
        """Test that a rate vector of the wrong length exits with an error."""
        result = cli_runner.invoke(app, ["transition", "-m", "GTR", "-r", "1,2", "-t", "0.1"])
        assert result.exit_code == 1

    def test_bad_number(self, cli_runner):
        """Test that a non-numeric rate list exits with an error."""
        result = cli_runner.invoke(app, ["transition", "-m", "GTR", "-r", "1,a,1,1,2,1", "-t", "0.1"])
        assert result.exit_code == 1

    def test_negative_time(self, cli_runner):
        """Test that a negative branch length is rejected."""
        result = cli_runner.invoke(app, ["transition", "-m", "JC", "-t", "-1"])
        assert result.exit_code != 0


class TestCLIInfo:
    """Test 'info' command functionality."""

    def test_gtr_info(self, cli_runner):
        result = cli_runner.invoke(
            app, ["info", "-m", "GTR", "-r", "1,2,1,1,2,1", "-f", "0.1,0.2,0.3,0.4"]
        )

        assert result.exit_code == 0
        assert "Rate matrix Q:" in result.stdout
        assert "Eigenvalues:" in result.stdout
        assert "Free parameters: 5" in result.stdout

    def test_poisson_info(self, cli_runner):
        result = cli_runner.invoke(app, ["info", "-m", "POISSON"])

        assert result.exit_code == 0
        assert "States: 20" in result.stdout
        assert "Evaluation: closed form" in result.stdout


class TestCLIFit:
    """Test 'fit' command functionality."""

    def test_fit_k80_text_output(self, cli_runner):
        """Test fitting K80 with text output."""
        result = cli_runner.invoke(app, ["fit", "-m", "K80", "--seq1", SEQ1, "--seq2", SEQ2, "-q"])

        assert result.exit_code == 0
        assert "MODEL: K80" in result.stdout
        assert "Log-likelihood:" in result.stdout
        assert "Branch length:" in result.stdout

    def test_fit_json_output(self, cli_runner, tmp_path):
        """Test fitting HKY with JSON output to a file."""
        output_file = tmp_path / "fit.json"
        result = cli_runner.invoke(app, [
            "fit", "-m", "HKY", "--seq1", SEQ1, "--seq2", SEQ2,
            "--format", "json", "-o", str(output_file), "-q",
        ])

        assert result.exit_code == 0
        assert output_file.exists()
        data = json.loads(output_file.read_text())
        assert data["model_name"] == "HKY"
        assert data["branch_length"] > 0
        assert len(data["rates"]) == 6
        assert sum(data["frequencies"]) == pytest.approx(1.0)
        assert data["log_likelihood"] < 0

    def test_fit_hky_empirical_frequencies(self, cli_runner, tmp_path):
        """Test that HKY reads its base frequencies off the sequences."""
        output_file = tmp_path / "hky.json"
        result = cli_runner.invoke(app, [
            "fit", "-m", "HKY", "--seq1", SEQ1, "--seq2", SEQ2,
            "--format", "json", "-o", str(output_file),
        ])

        assert result.exit_code == 0
        assert "Parameters: 1 + branch length" in result.output
        data = json.loads(output_file.read_text())
        # A, C, G, T counted over both sequences, plus a pseudocount of 0.5
        expected = np.array([19.5, 20.5, 21.5, 20.5]) / 82.0
        np.testing.assert_allclose(data["frequencies"], expected, rtol=1e-12)
        assert len(data["variables"]) == 2

    def test_fit_hky_optimized_frequencies(self, cli_runner):
        """Test that --optimize-freqs adds the frequency parameters."""
        result = cli_runner.invoke(app, [
            "fit", "-m", "HKY", "--seq1", SEQ1, "--seq2", SEQ2, "--optimize-freqs",
        ])

        assert result.exit_code == 0
        assert "Parameters: 4 + branch length" in result.output

    def test_fit_given_frequencies(self, cli_runner):
        """Test that --freqs overrides the counted frequencies."""
        result = cli_runner.invoke(app, [
            "fit", "-m", "F81", "--seq1", SEQ1, "--seq2", SEQ2, "-f", "0.1,0.2,0.3,0.4",
        ])

        assert result.exit_code == 0
        assert "Parameters: 0 + branch length" in result.output
        assert "0.10000 0.20000 0.30000 0.40000" in result.output

    def test_fit_jc_no_parameters(self, cli_runner, tmp_path):
        """Test fitting only the distance under a parameterless model."""
        output_file = tmp_path / "jc.json"
        result = cli_runner.invoke(app, [
            "fit", "-m", "JC", "--seq1", SEQ1, "--seq2", SEQ2,
            "--format", "json", "-o", str(output_file), "-q",
        ])

        assert result.exit_code == 0
        data = json.loads(output_file.read_text())
        assert data["model_name"] == "JC"
        assert 0 < data["branch_length"] < 1

    def test_fit_binary(self, cli_runner):
        """Test fitting GTR2 frequencies on binary sequences."""
        result = cli_runner.invoke(
            app, ["fit", "-m", "GTR2", "--seq1", "0101100111", "--seq2", "0111100111", "-q"]
        )

        assert result.exit_code == 0
        assert "MODEL: GTR2" in result.stdout

    def test_fit_length_mismatch(self, cli_runner):
        """Test that sequences of different lengths exit with an error."""
        result = cli_runner.invoke(app, ["fit", "-m", "JC", "--seq1", "ACGT", "--seq2", "ACG"])
        assert result.exit_code == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
